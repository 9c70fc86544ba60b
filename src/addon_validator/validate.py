from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional

from .catalog import CatalogClient, Record
from .errors import (
    ConflictingFieldsError,
    InvalidIdentifierRequirementError,
    InvalidRemovalIdentifierError,
    MissingFieldError,
    RecordNotFoundError,
    SubmissionNotFoundError,
)
from .fields import SubmissionFields
from .identifiers import IdentifierKind, classify_identifier, is_existing_identifier
from .io import read_archive, read_record
from .models import CreateItem, Image, ItemOperation, RemoveItem, RichDescription, UpdateItem


log = logging.getLogger(__name__)

# Checked in this order; the first missing one is reported.
CREATE_REQUIRED_FIELDS = [
    "title",
    "description",
    "category",
    "authors",
    "release_date",
    "cover_image",
    "addon",
]


def build_rich_description(fields: SubmissionFields) -> Optional[RichDescription]:
    if fields.rich_description_base is None:
        return None
    if fields.rich_description_cover_image is None:
        raise MissingFieldError(fields.name_of("rich_description_cover_image"))
    detail_images = [Image(location, caption) for location, caption in fields.rich_description_detail_images]
    return RichDescription(
        base_text=fields.rich_description_base,
        cover_image=Image(fields.rich_description_cover_image, fields.rich_description_cover_image_caption),
        notes=fields.rich_description_notes,
        note_type=fields.rich_description_note_type,
        detail_images=detail_images or None,
        youtube_ids=fields.rich_description_youtube_ids,
        leading_html=fields.rich_description_additional_leading,
        trailing_html=fields.rich_description_additional_trailing,
    )


def _build_create(fields: SubmissionFields, rich_description: Optional[RichDescription]) -> CreateItem:
    for key in CREATE_REQUIRED_FIELDS:
        if not getattr(fields, key):
            raise MissingFieldError(fields.name_of(key))
    if fields.remove_category or fields.remove_rich_description:
        log.warning("Removal flags are ignored when creating a new add-on")
    return CreateItem(
        title=fields.title,
        category=fields.category,
        authors=list(fields.authors),
        description=fields.description,
        release_date=fields.release_date,
        cover_image=fields.cover_image,
        addon=fields.addon,
        id_requirement=fields.id_requirement,
        demo_object_name=fields.demo_object_name,
        last_update_date=fields.last_update_date,
        rich_description=rich_description,
    )


def _build_update(fields: SubmissionFields, rich_description: Optional[RichDescription]) -> UpdateItem:
    if fields.remove_category and fields.category is not None:
        raise ConflictingFieldsError(fields.name_of("category"), fields.name_of("remove_category"))
    if fields.remove_rich_description and rich_description is not None:
        raise ConflictingFieldsError(
            fields.name_of("rich_description_base"), fields.name_of("remove_rich_description")
        )
    return UpdateItem(
        id=fields.id_requirement,
        title=fields.title,
        category=fields.category,
        authors=list(fields.authors) if fields.authors else None,
        description=fields.description,
        demo_object_name=fields.demo_object_name,
        release_date=fields.release_date,
        last_update_date=fields.last_update_date,
        cover_image=fields.cover_image,
        addon=fields.addon,
        rich_description=rich_description,
        remove_category=fields.remove_category,
        remove_rich_description=fields.remove_rich_description,
    )


def validate(fields: SubmissionFields) -> ItemOperation:
    """Turn primitive submission fields into a single catalog operation."""
    id_requirement = fields.id_requirement
    if fields.remove:
        log.info("Parsing remove item...")
        if not is_existing_identifier(id_requirement):
            raise InvalidRemovalIdentifierError()
        return RemoveItem(id=id_requirement)

    modifying_existing = False
    if id_requirement is not None:
        kind = classify_identifier(id_requirement)
        if kind is IdentifierKind.INVALID:
            raise InvalidIdentifierRequirementError()
        modifying_existing = kind is IdentifierKind.EXISTING

    rich_description = build_rich_description(fields)

    log.info("Parsing main contents...")
    if not modifying_existing:
        return _build_create(fields, rich_description)
    return _build_update(fields, rich_description)


def validate_record(record: Record) -> ItemOperation:
    return validate(read_record(record))


def validate_record_id(client: CatalogClient, record_name: str) -> ItemOperation:
    log.info(f"Fetching pending record: {record_name}")
    try:
        record = client.fetch_record(record_name)
    except RecordNotFoundError:
        raise SubmissionNotFoundError()
    return validate_record(record)


def validate_archive(zip_path: Path, scratch_dir: Optional[Path] = None) -> ItemOperation:
    return validate(read_archive(zip_path, scratch_dir))
