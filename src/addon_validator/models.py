"""Typed submission operations and the rich description document."""

from __future__ import annotations
import enum
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Union

from .catalog import Reference


IMAGE_CAPTION_CLASS = "text-secondary-size text-secondary-color"
YOUTUBE_EMBED = (
    '<p class="video-box"><iframe src="https://www.youtube.com/embed/{id}" title="YouTube video player"'
    ' frameborder="0" allow="accelerometer; autoplay; clipboard-write; encrypted-media; gyroscope;'
    ' picture-in-picture" allowfullscreen=""></iframe></p>\n'
)


class NoteType(enum.Enum):
    NOTE = "note"
    IMPORTANT = "important"
    WARNING = "warning"

    @classmethod
    def from_string(cls, value: Optional[str]) -> "NoteType":
        if not value:
            return cls.NOTE
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.NOTE

    @property
    def html_class(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class Image:
    location: str
    caption: Optional[str] = None


def _image_block(placeholder: int, caption: Optional[str]) -> str:
    img = f'<img class="full-width-image" src="{{{placeholder}}}">'
    if caption:
        return f'<p>{img}<i class="{IMAGE_CAPTION_CLASS}">{caption}</i></p>\n'
    return f"<p>{img}</p>\n"


@dataclass(frozen=True)
class RichDescription:
    base_text: str
    cover_image: Image
    notes: Optional[List[str]] = None
    note_type: Optional[str] = None
    detail_images: Optional[List[Image]] = None
    youtube_ids: Optional[List[str]] = None
    leading_html: Optional[str] = None
    trailing_html: Optional[str] = None

    def __post_init__(self) -> None:
        if self.detail_images is not None and not self.detail_images:
            object.__setattr__(self, "detail_images", None)

    @property
    def images(self) -> List[Image]:
        """Cover first, then detail images; index matches the `{n}` placeholders."""
        return [self.cover_image] + list(self.detail_images or [])

    def render(self) -> str:
        """Render the HTML fragment.

        Images are referenced by positional placeholders (`{0}` for the cover,
        `{1}`... for detail images) that the catalog resolves to asset URLs.
        """
        parts = [f"<p>{self.base_text}</p>\n"]
        if self.notes:
            kind = NoteType.from_string(self.note_type)
            if len(self.notes) == 1:
                content = f"<p>{self.notes[0]}</p>"
            else:
                content = "<ul>" + "".join(f"<li>{n}</li>" for n in self.notes) + "</ul>"
            parts.append(
                f'<p></p><aside class="aside-container {kind.html_class}">'
                f'<p class="label">{kind.label}</p>{content}</aside><p></p>'
            )
        parts.append(_image_block(0, self.cover_image.caption))
        if self.leading_html is not None:
            parts.append(f"<p></p>{self.leading_html}<p></p>\n")
        for video_id in self.youtube_ids or []:
            parts.append(YOUTUBE_EMBED.format(id=video_id))
        for index, image in enumerate(self.detail_images or []):
            parts.append(_image_block(index + 1, image.caption))
        if self.trailing_html is not None:
            parts.append(f"<p></p>{self.trailing_html}<p></p>\n")
        return "".join(parts)


@dataclass(frozen=True)
class RemoveItem:
    id: str


@dataclass(frozen=True)
class CreateItem:
    title: str
    category: Reference
    authors: List[str]
    description: str
    release_date: datetime
    cover_image: str
    addon: str
    id_requirement: Optional[str] = None
    demo_object_name: Optional[str] = None
    last_update_date: Optional[datetime] = None
    rich_description: Optional[RichDescription] = None


@dataclass(frozen=True)
class UpdateItem:
    """Sparse patch of an existing entry: None means leave unchanged.

    Only category and the rich description can be cleared, via their flags.
    """

    id: str
    title: Optional[str] = None
    category: Optional[Reference] = None
    authors: Optional[List[str]] = None
    description: Optional[str] = None
    demo_object_name: Optional[str] = None
    release_date: Optional[datetime] = None
    last_update_date: Optional[datetime] = None
    cover_image: Optional[str] = None
    addon: Optional[str] = None
    rich_description: Optional[RichDescription] = None
    remove_category: bool = False
    remove_rich_description: bool = False

    def __post_init__(self) -> None:
        if self.remove_category and self.category is not None:
            raise ValueError("category cannot be both set and removed")
        if self.remove_rich_description and self.rich_description is not None:
            raise ValueError("rich_description cannot be both set and removed")


ItemOperation = Union[RemoveItem, UpdateItem, CreateItem]

__all__ = [
    "Image",
    "NoteType",
    "RichDescription",
    "RemoveItem",
    "CreateItem",
    "UpdateItem",
    "ItemOperation",
]
