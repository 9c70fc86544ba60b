from __future__ import annotations
import json
import logging
import shutil
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import unquote, urlparse

import requests

from . import images
from .catalog import HTML_RESOURCE_TYPE, RESOURCE_ITEM_TYPE, Asset, CatalogClient, Record, SavePolicy
from .errors import (
    CatalogError,
    DownloadError,
    EmptyResultError,
    RecordNotFoundError,
    RemoteServiceError,
    UnknownUploadError,
    UploadError,
    ValidationError,
)
from .identifiers import generate_identifier, new_record_name
from .models import CreateItem, ItemOperation, RemoveItem, RichDescription, UpdateItem


log = logging.getLogger(__name__)

HTML_LANGUAGE = "en"


def _scratch_file(scratch_dir: Optional[Path]) -> Path:
    base = Path(scratch_dir) if scratch_dir else Path(tempfile.gettempdir())
    return base / str(uuid.uuid4()).upper()


def download(uri: str, scratch_dir: Optional[Path] = None, timeout: int = 60) -> Path:
    """Fetch `uri` (http(s), file:// or a plain path) into a new scratch file."""
    destination = _scratch_file(scratch_dir)
    parsed = urlparse(uri)
    try:
        if parsed.scheme in ("http", "https"):
            resp = requests.get(uri, timeout=timeout)
            resp.raise_for_status()
            destination.write_bytes(resp.content)
        else:
            source = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(uri)
            shutil.copyfile(source, destination)
    except (requests.RequestException, OSError) as e:
        log.debug(f"download failed for {uri}: {e}")
        raise DownloadError()
    log.debug(f"download: {uri} -> {destination}")
    return destination


def html_reference(record_name: str) -> str:
    return json.dumps({HTML_LANGUAGE: record_name})


@dataclass
class CommitStep:
    name: str
    action: Callable[[Dict[str, Any]], None]


class CommitPlan:
    """Ordered, named commit steps sharing one state dict.

    A failing step stops the plan; steps that already ran are not undone.
    `completed` and `failed_step` tell the caller how far the commit got.
    """

    def __init__(self, steps: Optional[List[CommitStep]] = None) -> None:
        self.steps: List[CommitStep] = list(steps or [])
        self.completed: List[str] = []
        self.failed_step: Optional[str] = None

    def add(self, name: str, action: Callable[[Dict[str, Any]], None]) -> "CommitPlan":
        self.steps.append(CommitStep(name, action))
        return self

    def run(self, state: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        state = {} if state is None else state
        for step in self.steps:
            log.info(f"Commit step: {step.name}")
            try:
                step.action(state)
            except Exception:
                self.failed_step = step.name
                log.warning(f"Commit aborted at '{step.name}'; already committed: {self.completed or 'nothing'}")
                raise
            self.completed.append(step.name)
        return state


class Uploader:
    def __init__(
        self,
        client: CatalogClient,
        scratch_dir: Optional[Path] = None,
        timeout: int = 60,
    ) -> None:
        self.client = client
        self.scratch_dir = scratch_dir
        self.timeout = timeout
        self.last_plan: Optional[CommitPlan] = None

    # --- primitives ---
    def _download(self, uri: str) -> Path:
        return download(uri, self.scratch_dir, self.timeout)

    def _fetch(self, record_name: str) -> Record:
        try:
            return self.client.fetch_record(record_name)
        except RecordNotFoundError:
            raise EmptyResultError()

    def _submit(self, record: Record, policy: SavePolicy) -> Record:
        saved = self.client.save_record(record, policy)
        if saved is None:
            raise EmptyResultError()
        return saved

    def _download_cover(self, uri: str, state: Dict[str, Any]) -> None:
        state["cover_path"] = self._download(uri)

    def _thumbnail(self, state: Dict[str, Any]) -> None:
        state["thumbnail_path"] = images.make_thumbnail(state["cover_path"], _scratch_file(self.scratch_dir))

    def upload_rich_description(self, rich_description: RichDescription) -> str:
        """Save the rich description as its own record and return its name."""
        log.info("Downloading rich description assets")
        assets = []
        for image in rich_description.images:
            local = self._download(image.location)
            images.verify_image(local)
            assets.append(Asset(path=local))
        record = Record(HTML_RESOURCE_TYPE, new_record_name())
        print(f"Uploading rich description: {record.record_name}")
        record["data"] = rich_description.render().encode("utf-8")
        record["assets"] = assets
        return self._submit(record, SavePolicy.ALL_KEYS).record_name

    # --- plans ---
    def plan_remove(self, item: RemoveItem) -> CommitPlan:
        def fetch(state: Dict[str, Any]) -> None:
            state["record"] = self._fetch(item.id)

        def save(state: Dict[str, Any]) -> None:
            record = state["record"]
            # only authors and category are touched; the entry stays in the catalog
            record["authors"] = None
            record["category"] = None
            self._submit(record, SavePolicy.CHANGED_KEYS)

        return CommitPlan().add("fetch record", fetch).add("save record", save)

    def plan_create(self, item: CreateItem) -> CommitPlan:
        plan = CommitPlan()
        plan.add("download cover image", lambda state: self._download_cover(item.cover_image, state))
        plan.add("derive thumbnail", self._thumbnail)
        plan.add("download add-on", lambda state: state.update(addon_path=self._download(item.addon)))
        if item.rich_description is not None:
            plan.add(
                "upload rich description",
                lambda state: state.update(rich_description_id=self.upload_rich_description(item.rich_description)),
            )

        def save(state: Dict[str, Any]) -> None:
            record = Record(RESOURCE_ITEM_TYPE, generate_identifier(item.id_requirement))
            record["name"] = item.title
            record["description"] = item.description
            record["authors"] = list(item.authors)
            record["category"] = item.category
            record["publishTime"] = item.release_date
            record["lastUpdateTime"] = item.last_update_date
            record["objectName"] = item.demo_object_name
            record["image"] = Asset(path=state["cover_path"])
            record["thumbnail"] = Asset(path=state["thumbnail_path"])
            record["item"] = Asset(path=state["addon_path"])
            rich_id = state.get("rich_description_id")
            record["localizedHTMLReferences"] = html_reference(rich_id) if rich_id else None
            created = self._submit(record, SavePolicy.ALL_KEYS)
            state["record"] = created
            print(f"Created record: {created.record_name}")

        return plan.add("save record", save)

    def plan_update(self, item: UpdateItem) -> CommitPlan:
        plan = CommitPlan()
        plan.add("fetch record", lambda state: state.update(record=self._fetch(item.id)))
        if item.cover_image is not None:
            plan.add("download cover image", lambda state: self._download_cover(item.cover_image, state))
            plan.add("derive thumbnail", self._thumbnail)
        if item.addon is not None:
            plan.add("download add-on", lambda state: state.update(addon_path=self._download(item.addon)))
        if item.rich_description is not None:
            plan.add(
                "upload rich description",
                lambda state: state.update(rich_description_id=self.upload_rich_description(item.rich_description)),
            )

        def save(state: Dict[str, Any]) -> None:
            record: Record = state["record"]
            patch = {
                "name": item.title,
                "description": item.description,
                "authors": list(item.authors) if item.authors is not None else None,
                "category": item.category,
                "publishTime": item.release_date,
                "lastUpdateTime": item.last_update_date,
                "objectName": item.demo_object_name,
            }
            for key, value in patch.items():
                if value is not None:
                    record[key] = value
            if item.remove_category:
                record["category"] = None
            if "cover_path" in state:
                record["image"] = Asset(path=state["cover_path"])
                record["thumbnail"] = Asset(path=state["thumbnail_path"])
            if "addon_path" in state:
                record["item"] = Asset(path=state["addon_path"])
            if "rich_description_id" in state:
                record["localizedHTMLReferences"] = html_reference(state["rich_description_id"])
            elif item.remove_rich_description:
                record["localizedHTMLReferences"] = None
            self._submit(record, SavePolicy.CHANGED_KEYS)
            print(f"Updated record: {record.record_name} keys={record.changed_keys}")

        return plan.add("save record", save)

    def plan(self, operation: ItemOperation) -> CommitPlan:
        if isinstance(operation, RemoveItem):
            return self.plan_remove(operation)
        if isinstance(operation, UpdateItem):
            return self.plan_update(operation)
        if isinstance(operation, CreateItem):
            return self.plan_create(operation)
        raise TypeError(f"Unsupported operation: {operation!r}")

    def upload(self, operation: ItemOperation) -> None:
        print(f"Attempt to {type(operation).__name__.replace('Item', '').lower()} an item")
        try:
            self.last_plan = self.plan(operation)
            self.last_plan.run()
        except (ValidationError, UploadError):
            raise
        except CatalogError as e:
            log.error(f"Catalog request failed: {e}")
            raise RemoteServiceError()
        except requests.RequestException as e:
            log.error(f"Catalog request failed: {e}")
            raise RemoteServiceError()
        except Exception as e:
            log.exception(f"Unexpected upload failure: {e}")
            raise UnknownUploadError()
