from __future__ import annotations
import argparse
import os
import sys
from pathlib import Path
from typing import NoReturn, Optional

from dotenv import load_dotenv

from .cloudkit_client import CloudKitConfig


DEFAULT_CONTAINER = "iCloud.space.celestia.Celestia"
DEFAULT_ENVIRONMENT = "production"
DEFAULT_TIMEOUT = 60


def fail(msg: str) -> NoReturn:
    print(f"Error: {msg}", file=sys.stderr)
    sys.exit(1)


def load_env(dotenv_path: Optional[str]) -> None:
    if dotenv_path is None:
        # try default .env in cwd if present
        default_env = Path.cwd() / ".env"
        if default_env.exists():
            load_dotenv(default_env)
        return
    p = Path(dotenv_path)
    if not p.exists():
        fail(f".env file not found: {p}")
    load_dotenv(p)


def get_config(args: argparse.Namespace) -> CloudKitConfig:
    container = getattr(args, "container", None) or os.getenv("CLOUDKIT_CONTAINER", DEFAULT_CONTAINER)
    environment = getattr(args, "environment", None) or os.getenv("CLOUDKIT_ENVIRONMENT", DEFAULT_ENVIRONMENT)
    api_token = getattr(args, "api_token", None) or os.getenv("CLOUDKIT_API_TOKEN")
    key_id = getattr(args, "key_id", None) or os.getenv("CLOUDKIT_KEY_ID")
    key_file = getattr(args, "key_file_path", None) or os.getenv("CLOUDKIT_KEY_FILE")

    try:
        timeout = int(os.getenv("CLOUDKIT_TIMEOUT", str(DEFAULT_TIMEOUT)))
    except ValueError:
        fail("CLOUDKIT_TIMEOUT must be an integer number of seconds")

    if key_id and key_file:
        if not Path(key_file).expanduser().is_file():
            fail(f"Key file not found: {key_file}")
        key_file = str(Path(key_file).expanduser())
    elif not api_token:
        fail(
            "No authentication method is provided: pass --key-id and --key-file-path "
            "(or CLOUDKIT_KEY_ID/CLOUDKIT_KEY_FILE), or --api-token (or CLOUDKIT_API_TOKEN)"
        )

    if environment not in ("production", "development"):
        fail(f"Unknown CloudKit environment: {environment}")

    return CloudKitConfig(
        container=container.strip(),
        environment=environment,
        api_token=api_token,
        key_id=key_id,
        key_file=key_file,
        timeout=timeout,
    )
