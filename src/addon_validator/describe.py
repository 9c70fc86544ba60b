from __future__ import annotations
from datetime import datetime
from typing import Any, List, Optional

from .catalog import Reference
from .models import CreateItem, ItemOperation, RemoveItem, RichDescription, UpdateItem


NONE_TEXT = "(none)"


def _format_value(value: Any) -> str:
    if value is None:
        return NONE_TEXT
    if isinstance(value, Reference):
        return value.record_name
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def _rich_description_lines(rich_description: Optional[RichDescription]) -> List[str]:
    if rich_description is None:
        return []
    lines = ["Rich description:"]
    for index, image in enumerate(rich_description.images):
        caption = f" ({image.caption})" if image.caption else ""
        lines.append(f"  Image {{{index}}}: {image.location}{caption}")
    lines.append("  HTML:")
    lines.extend(f"    {line}" for line in rich_description.render().splitlines())
    return lines


def summarize(operation: ItemOperation) -> str:
    """Human readable description of a pending operation, shown before upload."""
    if isinstance(operation, RemoveItem):
        return f"Remove item: {operation.id}"

    if isinstance(operation, CreateItem):
        lines = [
            "Create item",
            f"ID requirement: {_format_value(operation.id_requirement)}",
            f"Title: {_format_value(operation.title)}",
            f"Description: {_format_value(operation.description)}",
            f"Category: {_format_value(operation.category)}",
            f"Authors: {_format_value(operation.authors)}",
            f"Release date: {_format_value(operation.release_date)}",
            f"Last update date: {_format_value(operation.last_update_date)}",
            f"Demo object name: {_format_value(operation.demo_object_name)}",
            f"Cover image: {_format_value(operation.cover_image)}",
            f"Add-on: {_format_value(operation.addon)}",
        ]
        lines.extend(_rich_description_lines(operation.rich_description))
        return "\n".join(lines)

    if isinstance(operation, UpdateItem):
        lines = [f"Update item: {operation.id}"]
        changes = [
            ("Title", operation.title),
            ("Description", operation.description),
            ("Category", operation.category),
            ("Authors", operation.authors),
            ("Release date", operation.release_date),
            ("Last update date", operation.last_update_date),
            ("Demo object name", operation.demo_object_name),
            ("Cover image", operation.cover_image),
            ("Add-on", operation.addon),
        ]
        for label, value in changes:
            if value is not None:
                lines.append(f"{label} -> {_format_value(value)}")
        if operation.remove_category:
            lines.append("Category -> (removed)")
        if operation.remove_rich_description:
            lines.append("Rich description -> (removed)")
        lines.extend(_rich_description_lines(operation.rich_description))
        if len(lines) == 1:
            lines.append("No changes")
        return "\n".join(lines)

    raise TypeError(f"Unsupported operation: {operation!r}")
