#!/usr/bin/env python3
import argparse
import logging
from pathlib import Path
from typing import List, Optional

from addon_validator.cloudkit_client import CloudKitDatabase, build_session
from addon_validator.config import fail, get_config, load_env
from addon_validator.describe import summarize
from addon_validator.errors import CatalogError, UploadError, ValidationError
from addon_validator.upload import Uploader
from addon_validator.validate import validate_archive, validate_record_id


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Validate a pending Celestia add-on submission and optionally upload it")
    source = p.add_mutually_exclusive_group(required=True)
    source.add_argument("--record-id", help="The pending record ID to validate or update from")
    source.add_argument("--zip-file-path", help="The zip file to validate or update from")
    p.add_argument("--upload", action="store_true", help="Validate the pending submission and upload it")
    p.add_argument("--key-file-path", help="The key file path for CloudKit (or CLOUDKIT_KEY_FILE)")
    p.add_argument("--key-id", help="The key ID for CloudKit (or CLOUDKIT_KEY_ID)")
    p.add_argument("--api-token", help="The API token for CloudKit (or CLOUDKIT_API_TOKEN)")
    p.add_argument("--container", help="CloudKit container identifier (or CLOUDKIT_CONTAINER)")
    p.add_argument(
        "--environment",
        choices=["production", "development"],
        help="CloudKit environment (or CLOUDKIT_ENVIRONMENT, default: production)",
    )
    p.add_argument("--scratch-dir", help="Directory for extracted archives and downloaded assets (default: system temp)")
    p.add_argument("--dotenv", help="Path to .env file (optional)")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v for INFO, -vv for DEBUG)")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")
    log = logging.getLogger(__name__)
    load_env(args.dotenv)
    scratch_dir = Path(args.scratch_dir).expanduser() if args.scratch_dir else None

    database = None
    if args.record_id or args.upload:
        cfg = get_config(args)
        log.info(f"Using container={cfg.container} environment={cfg.environment}")
        database = CloudKitDatabase(build_session(cfg), cfg)

    try:
        if args.record_id:
            operation = validate_record_id(database, args.record_id.strip())
        else:
            zip_path = Path(args.zip_file_path).expanduser()
            if not zip_path.is_file():
                fail(f"Zip file not found: {zip_path}")
            operation = validate_archive(zip_path, scratch_dir)
    except ValidationError as e:
        fail(str(e))
    except CatalogError as e:
        fail(f"CloudKit error: {e}")

    print(f"Summary:\n{summarize(operation)}")

    if args.upload:
        uploader = Uploader(database, scratch_dir=scratch_dir, timeout=database.cfg.timeout)
        try:
            uploader.upload(operation)
        except (ValidationError, UploadError) as e:
            plan = uploader.last_plan
            if plan is not None and plan.completed:
                print(f"Completed before failure: {', '.join(plan.completed)}")
            fail(str(e))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
