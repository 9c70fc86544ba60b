from __future__ import annotations
import logging
import tempfile
import uuid
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

from .catalog import Asset, Record, Reference
from .errors import ArchiveExtractionError, DirectoryCreationError, InvalidFieldError, MissingFieldError
from .fields import SubmissionFields


log = logging.getLogger(__name__)

ARCHIVE_DATE_FORMAT = "%Y/%m/%d %H:%M:%S"
RICH_DESCRIPTION_DIR = "rich_description"

# Logical field key -> path inside the archive, used in error messages.
ARCHIVE_FIELD_NAMES = {
    "id_requirement": "id_requirement.txt",
    "title": "title.txt",
    "description": "description.txt",
    "category": "category.txt",
    "authors": "authors.txt",
    "release_date": "release_date.txt",
    "last_update_date": "last_update_date.txt",
    "demo_object_name": "demo_object_name.txt",
    "cover_image": "cover_image.jpg",
    "addon": "addon.zip",
    "remove_category": "remove_category.txt",
    "remove_rich_description": "remove_rich_description.txt",
    "rich_description_base": f"{RICH_DESCRIPTION_DIR}/base.txt",
    "rich_description_cover_image": f"{RICH_DESCRIPTION_DIR}/cover_image.jpg",
}


# --------------------------------------------
# Record source
# --------------------------------------------

def _string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _string_list(value: Any) -> Optional[List[str]]:
    if not isinstance(value, (list, tuple)):
        return None
    items = [v for v in value if isinstance(v, str)]
    return items or None


def _asset_location(value: Any) -> Optional[str]:
    if isinstance(value, Asset):
        return value.uri
    return _string(value)


def _reference(value: Any) -> Optional[Reference]:
    if isinstance(value, Reference):
        return value
    name = _string(value)
    return Reference(name) if name else None


def _timestamp(value: Any) -> Optional[datetime]:
    return value if isinstance(value, datetime) else None


def read_record(record: Record) -> SubmissionFields:
    """Read a pending submission record into primitive fields.

    Asset values must already carry a download URL (or a local path), as
    returned by the catalog client.
    """
    detail_assets = record.get("rich_description_detail_images") or []
    captions = _string_list(record.get("rich_description_detail_image_captions")) or []
    detail_images = []
    for index, asset in enumerate(detail_assets):
        location = _asset_location(asset)
        if location is None:
            continue
        caption = captions[index] if index < len(captions) else None
        detail_images.append((location, caption or None))

    return SubmissionFields(
        remove=bool(record.get("remove")),
        id_requirement=_string(record.get("id_requirement")),
        title=_string(record.get("title")),
        description=_string(record.get("description")),
        category=_reference(record.get("category")),
        authors=_string_list(record.get("authors")),
        release_date=_timestamp(record.get("release_date")),
        last_update_date=_timestamp(record.get("last_update_date")),
        demo_object_name=_string(record.get("demo_object_name")),
        cover_image=_asset_location(record.get("cover_image")),
        addon=_asset_location(record.get("addon")),
        remove_category=bool(record.get("remove_category")),
        remove_rich_description=bool(record.get("remove_rich_description")),
        rich_description_base=_string(record.get("rich_description_base")),
        rich_description_notes=_string_list(record.get("rich_description_notes")),
        rich_description_note_type=_string(record.get("rich_description_note_type")),
        rich_description_cover_image=_asset_location(record.get("rich_description_cover_image")),
        rich_description_cover_image_caption=_string(record.get("rich_description_cover_image_caption")),
        rich_description_youtube_ids=_string_list(record.get("rich_description_youtube_ids")),
        rich_description_additional_leading=_string(record.get("rich_description_additional_leading")),
        rich_description_additional_trailing=_string(record.get("rich_description_additional_trailing")),
        rich_description_detail_images=detail_images,
    )


# --------------------------------------------
# Archive source
# --------------------------------------------

def _archive_name(path: Path) -> str:
    if path.parent.name == RICH_DESCRIPTION_DIR:
        return f"{RICH_DESCRIPTION_DIR}/{path.name}"
    return path.name


def _decode(path: Path) -> Optional[str]:
    """UTF-8 file content with newlines normalized, or None when the file is missing."""
    if not path.is_file():
        return None
    data = path.read_bytes()
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        log.debug(f"{path} is not valid UTF-8: {e}")
        raise InvalidFieldError(_archive_name(path), data[:40])
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _read_text(path: Path) -> Optional[str]:
    """Stripped file content, or None when the file is missing or blank."""
    text = _decode(path)
    if text is None:
        return None
    return text.strip() or None


def _read_raw(path: Path) -> Optional[str]:
    text = _decode(path)
    if text is None:
        return None
    return text if text.strip() else None


def _read_lines(path: Path) -> Optional[List[str]]:
    text = _decode(path)
    if text is None:
        return None
    lines = [line.strip() for line in text.split("\n")]
    return [line for line in lines if line] or None


def _read_date(path: Path, field_name: str) -> Optional[datetime]:
    text = _read_text(path)
    if text is None:
        return None
    try:
        parsed = datetime.strptime(text, ARCHIVE_DATE_FORMAT)
    except ValueError:
        raise InvalidFieldError(field_name, text)
    return parsed.replace(tzinfo=timezone.utc)


def _file_location(path: Path) -> Optional[str]:
    if not path.is_file():
        return None
    return path.resolve().as_uri()


def find_content_root(directory: Path) -> Path:
    """Descend through wrapper folders (e.g. `MyAddon/`) to the real content.

    Stops at a folder holding several entries, a single file, or a single
    `rich_description` folder.
    """
    current = directory
    while True:
        entries = list(current.iterdir())
        if len(entries) != 1:
            return current
        only = entries[0]
        if not only.is_dir() or only.name == RICH_DESCRIPTION_DIR:
            return current
        current = only


def extract_archive(zip_path: Path, scratch_dir: Optional[Path] = None) -> Path:
    base = Path(scratch_dir) if scratch_dir else Path(tempfile.gettempdir())
    destination = base / uuid.uuid4().hex
    try:
        destination.mkdir(parents=True)
    except OSError as e:
        log.debug(f"mkdir failed for {destination}: {e}")
        raise DirectoryCreationError()
    try:
        with zipfile.ZipFile(zip_path) as zf:
            zf.extractall(destination)
    except (zipfile.BadZipFile, OSError) as e:
        log.debug(f"extract failed for {zip_path}: {e}")
        raise ArchiveExtractionError()
    log.info(f"Extracted {zip_path} to {destination}")
    return destination


def _read_rich_description(directory: Path, fields: SubmissionFields) -> None:
    base = _read_text(directory / "base.txt")
    if base is None:
        raise MissingFieldError(ARCHIVE_FIELD_NAMES["rich_description_base"])
    fields.rich_description_base = base
    fields.rich_description_notes = _read_lines(directory / "notes.txt")
    fields.rich_description_note_type = _read_text(directory / "note_type.txt")
    fields.rich_description_cover_image = _file_location(directory / "cover_image.jpg")
    fields.rich_description_cover_image_caption = _read_text(directory / "cover_image.txt")
    fields.rich_description_youtube_ids = _read_lines(directory / "youtube_ids.txt")
    fields.rich_description_additional_leading = _read_raw(directory / "additional_leading.html")
    fields.rich_description_additional_trailing = _read_raw(directory / "additional_trailing.html")

    index = 0
    while True:
        image = directory / f"detail_image_{index}.jpg"
        if not image.is_file():
            break
        caption = _read_text(directory / f"detail_image_{index}.txt")
        fields.rich_description_detail_images.append((image.resolve().as_uri(), caption))
        index += 1


def read_directory(root: Path) -> SubmissionFields:
    """Read an extracted submission folder into primitive fields."""
    fields = SubmissionFields(field_names=dict(ARCHIVE_FIELD_NAMES))

    category_file = root / "category.txt"
    if category_file.is_file():
        category = _read_text(category_file)
        if category is None:
            # an empty category marks the submission as a removal
            fields.remove = True
        else:
            fields.category = Reference(category)

    id_requirement = _read_text(root / "id_requirement.txt")
    if id_requirement is None:
        id_requirement = _read_text(root / "id.txt")
        if id_requirement is not None:
            fields.field_names["id_requirement"] = "id.txt"
    fields.id_requirement = id_requirement

    fields.title = _read_text(root / "title.txt")
    fields.description = _read_text(root / "description.txt")
    fields.authors = _read_lines(root / "authors.txt")
    fields.release_date = _read_date(root / "release_date.txt", ARCHIVE_FIELD_NAMES["release_date"])
    fields.last_update_date = _read_date(root / "last_update_date.txt", ARCHIVE_FIELD_NAMES["last_update_date"])
    fields.demo_object_name = _read_text(root / "demo_object_name.txt")
    fields.addon = _file_location(root / "addon.zip")
    fields.cover_image = _file_location(root / "cover_image.jpg")
    fields.remove_category = (root / "remove_category.txt").is_file()
    fields.remove_rich_description = (root / "remove_rich_description.txt").is_file()

    rich_dir = root / RICH_DESCRIPTION_DIR
    if rich_dir.is_dir():
        log.info("Parsing rich description...")
        _read_rich_description(rich_dir, fields)
    return fields


def read_archive(zip_path: Path, scratch_dir: Optional[Path] = None) -> SubmissionFields:
    destination = extract_archive(Path(zip_path), scratch_dir)
    root = find_content_root(destination)
    log.debug(f"Content root resolved to {root}")
    return read_directory(root)
