#!/usr/bin/env python3
"""Basic smoke test for the archive validator.

Builds a sample add-on submission in a temp dir, validates it and prints the
summary. Runs without network or CloudKit credentials.
"""
import tempfile
import zipfile
from io import BytesIO
from pathlib import Path

from PIL import Image

from addon_validator.describe import summarize
from addon_validator.models import CreateItem
from addon_validator.validate import validate_archive


def _jpeg(color: str) -> bytes:
    buf = BytesIO()
    Image.new('RGB', (1200, 800), color).save(buf, format='JPEG')
    return buf.getvalue()


SAMPLE_FILES = {
    'Sample Addon/title.txt': 'Sample Moons Pack\n',
    'Sample Addon/description.txt': 'Sample add-on used by the smoke test.',
    'Sample Addon/category.txt': '4E1A7F3B-5C6D-4E8F-9A0B-1C2D3E4F5A6B',
    'Sample Addon/authors.txt': 'Alice\nBob\n',
    'Sample Addon/release_date.txt': '2023/04/01 12:00:00',
    'Sample Addon/id_requirement.txt': 'AB12',
    'Sample Addon/cover_image.jpg': _jpeg('navy'),
    'Sample Addon/addon.zip': b'PK\x05\x06' + b'\x00' * 18,
    'Sample Addon/rich_description/base.txt': 'A rich description.',
    'Sample Addon/rich_description/cover_image.jpg': _jpeg('teal'),
    'Sample Addon/rich_description/notes.txt': 'Requires Celestia 1.7\n',
    'Sample Addon/rich_description/detail_image_0.jpg': _jpeg('olive'),
    'Sample Addon/rich_description/detail_image_0.txt': 'Detail view',
}


def main() -> int:
    with tempfile.TemporaryDirectory() as tmp:
        tmp_path = Path(tmp)
        zip_path = tmp_path / 'sample.zip'
        with zipfile.ZipFile(zip_path, 'w') as zf:
            for name, content in SAMPLE_FILES.items():
                zf.writestr(name, content)

        operation = validate_archive(zip_path, tmp_path / 'scratch')
        if not isinstance(operation, CreateItem):
            print(f"Smoke test failed: expected a create operation, got {type(operation).__name__}")
            return 1
        if operation.rich_description is None or len(operation.rich_description.images) != 2:
            print("Smoke test failed: rich description images not collected")
            return 1
        print(summarize(operation))
        print("Smoke test ok")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
