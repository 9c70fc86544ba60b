from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .catalog import Reference


@dataclass
class SubmissionFields:
    """Primitive, unvalidated fields read from one submission source.

    Both source readers fill this in; `field_names` maps the keys below to the
    names a submitter sees in that source (record key or archive path) so
    validation errors point at the right place.
    """

    remove: bool = False
    id_requirement: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[Reference] = None
    authors: Optional[List[str]] = None
    release_date: Optional[datetime] = None
    last_update_date: Optional[datetime] = None
    demo_object_name: Optional[str] = None
    cover_image: Optional[str] = None
    addon: Optional[str] = None
    remove_category: bool = False
    remove_rich_description: bool = False

    rich_description_base: Optional[str] = None
    rich_description_notes: Optional[List[str]] = None
    rich_description_note_type: Optional[str] = None
    rich_description_cover_image: Optional[str] = None
    rich_description_cover_image_caption: Optional[str] = None
    rich_description_youtube_ids: Optional[List[str]] = None
    rich_description_additional_leading: Optional[str] = None
    rich_description_additional_trailing: Optional[str] = None
    # (location, caption) pairs in placeholder order
    rich_description_detail_images: List[Tuple[str, Optional[str]]] = field(default_factory=list)

    field_names: Dict[str, str] = field(default_factory=dict)

    def name_of(self, key: str) -> str:
        return self.field_names.get(key, key)
