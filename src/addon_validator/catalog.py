from __future__ import annotations
import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol


RESOURCE_ITEM_TYPE = "ResourceItem"
HTML_RESOURCE_TYPE = "HTMLResource"


class SavePolicy(enum.Enum):
    ALL_KEYS = "allKeys"
    CHANGED_KEYS = "changedKeys"


@dataclass(frozen=True)
class Reference:
    record_name: str


@dataclass(frozen=True)
class Asset:
    """Binary attachment: a local file waiting for upload, or a stored asset."""

    path: Optional[Path] = None
    download_url: Optional[str] = None
    receipt: Optional[Dict[str, Any]] = None

    @property
    def uri(self) -> Optional[str]:
        if self.download_url:
            return self.download_url
        if self.path is not None:
            return Path(self.path).resolve().as_uri()
        return None


class Record:
    """A catalog record that tracks which keys were set since it was loaded.

    Assigning None clears the attribute on save.
    """

    def __init__(
        self,
        record_type: str,
        record_name: str,
        fields: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.record_type = record_type
        self.record_name = record_name
        self._fields: Dict[str, Any] = dict(fields or {})
        self._changed: List[str] = []

    def __getitem__(self, key: str) -> Any:
        return self._fields.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self._fields[key] = value
        if key not in self._changed:
            self._changed.append(key)

    def __contains__(self, key: str) -> bool:
        return self._fields.get(key) is not None

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def get(self, key: str, default: Any = None) -> Any:
        value = self._fields.get(key)
        return default if value is None else value

    @property
    def fields(self) -> Dict[str, Any]:
        return dict(self._fields)

    @property
    def changed_keys(self) -> List[str]:
        return list(self._changed)

    def __repr__(self) -> str:
        return f"Record(type={self.record_type!r}, name={self.record_name!r}, keys={sorted(self._fields)})"


class CatalogClient(Protocol):
    def fetch_record(self, record_name: str) -> Record:
        ...

    def save_record(self, record: Record, policy: SavePolicy) -> Record:
        ...
