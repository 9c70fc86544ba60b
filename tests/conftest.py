"""Shared fixtures: an in-memory catalog and helpers for building submissions."""

import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest
from PIL import Image

from addon_validator.catalog import Record, SavePolicy
from addon_validator.errors import RecordNotFoundError


EXISTING_ID = "0F8E6A3C-1B2D-4E5F-8A9B-0C1D2E3F4A5B"


class FakeCatalog:
    """CatalogClient that keeps records in a dict and logs every call."""

    def __init__(self, records: Optional[Dict[str, Record]] = None) -> None:
        self.records: Dict[str, Record] = dict(records or {})
        self.fetches: List[str] = []
        self.saves: List[Tuple[Record, SavePolicy, Dict]] = []

    def fetch_record(self, record_name: str) -> Record:
        self.fetches.append(record_name)
        if record_name not in self.records:
            raise RecordNotFoundError(record_name)
        return self.records[record_name]

    def save_record(self, record: Record, policy: SavePolicy) -> Record:
        if policy is SavePolicy.ALL_KEYS:
            sent = record.fields
        else:
            sent = {key: record[key] for key in record.changed_keys}
        self.saves.append((record, policy, sent))
        self.records[record.record_name] = record
        return record


@pytest.fixture
def catalog():
    return FakeCatalog()


def write_image(path: Path, size: Tuple[int, int] = (800, 600), color: str = "navy") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, format="JPEG")
    return path


def build_archive(zip_path: Path, files: Dict[str, object]) -> Path:
    """Write `files` (archive path -> str or bytes) into a new zip file."""
    with zipfile.ZipFile(zip_path, "w") as zf:
        for name, content in files.items():
            if isinstance(content, str):
                content = content.encode("utf-8")
            zf.writestr(name, content)
    return zip_path


def jpeg_bytes(size: Tuple[int, int] = (800, 600)) -> bytes:
    from io import BytesIO

    buf = BytesIO()
    Image.new("RGB", size, "teal").save(buf, format="JPEG")
    return buf.getvalue()


def create_files(prefix: str = "") -> Dict[str, object]:
    """All mandatory files for a new add-on."""
    return {
        f"{prefix}title.txt": "Jupiter Moons Pack\n",
        f"{prefix}description.txt": "High resolution textures for the Galilean moons.",
        f"{prefix}category.txt": "4E1A7F3B-5C6D-4E8F-9A0B-1C2D3E4F5A6B",
        f"{prefix}authors.txt": "Alice\r\n\r\nBob\n",
        f"{prefix}release_date.txt": "2023/04/01 12:30:00",
        f"{prefix}cover_image.jpg": jpeg_bytes(),
        f"{prefix}addon.zip": b"PK\x05\x06" + b"\x00" * 18,
    }
