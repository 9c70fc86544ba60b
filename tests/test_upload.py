"""Tests for committing operations to the catalog."""

import json
from datetime import datetime, timezone

import pytest
import requests
from PIL import Image

from conftest import EXISTING_ID, FakeCatalog, write_image

from addon_validator import images
from addon_validator.catalog import Asset, Record, Reference, SavePolicy
from addon_validator.errors import (
    CatalogError,
    DownloadError,
    EmptyResultError,
    MissingFieldError,
    RemoteServiceError,
    ResizeImageError,
    SaveThumbnailError,
    UnknownUploadError,
    UnsupportedImageError,
)
from addon_validator.models import CreateItem, Image as DescriptionImage, RemoveItem, RichDescription, UpdateItem
from addon_validator.upload import CommitPlan, Uploader, download, html_reference


RELEASE = datetime(2023, 4, 1, tzinfo=timezone.utc)


@pytest.fixture
def assets(tmp_path):
    cover = write_image(tmp_path / "src" / "cover.jpg", size=(1200, 900))
    detail = write_image(tmp_path / "src" / "detail.jpg")
    addon = tmp_path / "src" / "addon.zip"
    addon.write_bytes(b"addon-bytes")
    return {"cover": cover.as_uri(), "detail": detail.as_uri(), "addon": addon.as_uri()}


@pytest.fixture
def scratch(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return path


def make_create(assets, **overrides):
    values = dict(
        title="Title",
        category=Reference("CATEGORY"),
        authors=["Alice", "Bob"],
        description="Description",
        release_date=RELEASE,
        cover_image=assets["cover"],
        addon=assets["addon"],
    )
    values.update(overrides)
    return CreateItem(**values)


def existing_record():
    return Record(
        "ResourceItem",
        EXISTING_ID,
        {
            "name": "Old name",
            "description": "Old description",
            "authors": ["Old"],
            "category": Reference("OLD"),
            "localizedHTMLReferences": '{"en": "OLD-HTML"}',
        },
    )


class TestCommitPlan:
    def test_runs_steps_in_order(self):
        seen = []
        plan = CommitPlan().add("one", lambda s: seen.append(1)).add("two", lambda s: seen.append(2))
        plan.run()
        assert seen == [1, 2]
        assert plan.completed == ["one", "two"]
        assert plan.failed_step is None

    def test_failure_stops_without_rollback(self):
        seen = []

        def boom(state):
            raise RuntimeError("boom")

        plan = CommitPlan().add("one", lambda s: seen.append(1)).add("two", boom).add("three", lambda s: seen.append(3))
        with pytest.raises(RuntimeError):
            plan.run()
        assert seen == [1]
        assert plan.completed == ["one"]
        assert plan.failed_step == "two"


class TestRemove:
    def test_clears_authors_and_category_only(self):
        catalog = FakeCatalog({EXISTING_ID: existing_record()})
        Uploader(catalog).upload(RemoveItem(id=EXISTING_ID))
        record, policy, sent = catalog.saves[0]
        assert policy is SavePolicy.CHANGED_KEYS
        assert sent == {"authors": None, "category": None}
        assert record["name"] == "Old name"

    def test_missing_record_is_empty_result(self):
        with pytest.raises(EmptyResultError):
            Uploader(FakeCatalog()).upload(RemoveItem(id=EXISTING_ID))


class TestCreate:
    def test_create_saves_all_keys(self, assets, scratch):
        catalog = FakeCatalog()
        uploader = Uploader(catalog, scratch_dir=scratch)
        uploader.upload(make_create(assets, id_requirement="AB12", demo_object_name="Io"))

        assert len(catalog.saves) == 1
        record, policy, sent = catalog.saves[0]
        assert policy is SavePolicy.ALL_KEYS
        assert record.record_type == "ResourceItem"
        assert record.record_name.startswith("AB12")
        assert len(record.record_name) == 36
        assert sent["name"] == "Title"
        assert sent["authors"] == ["Alice", "Bob"]
        assert sent["category"] == Reference("CATEGORY")
        assert sent["publishTime"] == RELEASE
        assert sent["objectName"] == "Io"
        assert sent["localizedHTMLReferences"] is None
        assert sent["item"].path.read_bytes() == b"addon-bytes"
        with Image.open(sent["thumbnail"].path) as thumb:
            assert thumb.size == (600, 200)
        assert uploader.last_plan.completed == [
            "download cover image",
            "derive thumbnail",
            "download add-on",
            "save record",
        ]

    def test_create_with_rich_description(self, assets, scratch):
        catalog = FakeCatalog()
        rich = RichDescription(
            base_text="Base",
            cover_image=DescriptionImage(assets["cover"]),
            detail_images=[DescriptionImage(assets["detail"], "caption")],
        )
        Uploader(catalog, scratch_dir=scratch).upload(make_create(assets, rich_description=rich))

        assert len(catalog.saves) == 2
        html_record, html_policy, html_sent = catalog.saves[0]
        assert html_record.record_type == "HTMLResource"
        assert html_policy is SavePolicy.ALL_KEYS
        assert html_sent["data"] == rich.render().encode("utf-8")
        assert len(html_sent["assets"]) == 2
        assert all(isinstance(a, Asset) for a in html_sent["assets"])

        _, _, main_sent = catalog.saves[1]
        assert json.loads(main_sent["localizedHTMLReferences"]) == {"en": html_record.record_name}

    def test_resize_failure_saves_nothing(self, assets, scratch, monkeypatch):
        def fail_resize(image, width, height):
            raise ResizeImageError()

        monkeypatch.setattr(images, "resize_to_cover", fail_resize)
        catalog = FakeCatalog()
        uploader = Uploader(catalog, scratch_dir=scratch)
        with pytest.raises(ResizeImageError):
            uploader.upload(make_create(assets))
        assert catalog.saves == []
        assert uploader.last_plan.completed == ["download cover image"]
        assert uploader.last_plan.failed_step == "derive thumbnail"

    def test_thumbnail_write_failure(self, assets, scratch, monkeypatch):
        def fail_save(image, destination):
            raise SaveThumbnailError()

        monkeypatch.setattr(images, "save_jpeg", fail_save)
        catalog = FakeCatalog()
        with pytest.raises(SaveThumbnailError):
            Uploader(catalog, scratch_dir=scratch).upload(make_create(assets))
        assert catalog.saves == []

    def test_cover_not_an_image(self, assets, scratch, tmp_path):
        not_image = tmp_path / "src" / "cover.txt"
        not_image.write_text("plain text")
        catalog = FakeCatalog()
        with pytest.raises(UnsupportedImageError):
            Uploader(catalog, scratch_dir=scratch).upload(make_create(assets, cover_image=not_image.as_uri()))
        assert catalog.saves == []

    def test_rich_description_bad_image(self, assets, scratch, tmp_path):
        not_image = tmp_path / "src" / "detail.txt"
        not_image.write_text("plain text")
        rich = RichDescription(
            base_text="Base",
            cover_image=DescriptionImage(assets["cover"]),
            detail_images=[DescriptionImage(not_image.as_uri())],
        )
        catalog = FakeCatalog()
        with pytest.raises(UnsupportedImageError):
            Uploader(catalog, scratch_dir=scratch).upload(make_create(assets, rich_description=rich))
        assert catalog.saves == []

    def test_failed_main_save_keeps_rich_description(self, assets, scratch):
        class FailingMainSave(FakeCatalog):
            def save_record(self, record, policy):
                if record.record_type == "ResourceItem":
                    raise CatalogError("conflict")
                return super().save_record(record, policy)

        catalog = FailingMainSave()
        rich = RichDescription(base_text="Base", cover_image=DescriptionImage(assets["cover"]))
        uploader = Uploader(catalog, scratch_dir=scratch)
        with pytest.raises(RemoteServiceError):
            uploader.upload(make_create(assets, rich_description=rich))
        assert [r.record_type for r, _, _ in catalog.saves] == ["HTMLResource"]
        assert "upload rich description" in uploader.last_plan.completed
        assert uploader.last_plan.failed_step == "save record"

    def test_download_failure(self, assets, scratch, tmp_path):
        missing = (tmp_path / "nope.zip").as_uri()
        with pytest.raises(DownloadError):
            Uploader(FakeCatalog(), scratch_dir=scratch).upload(make_create(assets, addon=missing))


class TestUpdate:
    def test_only_present_fields_are_written(self, scratch):
        catalog = FakeCatalog({EXISTING_ID: existing_record()})
        Uploader(catalog, scratch_dir=scratch).upload(UpdateItem(id=EXISTING_ID, title="New name"))
        record, policy, sent = catalog.saves[0]
        assert policy is SavePolicy.CHANGED_KEYS
        assert sent == {"name": "New name"}
        assert record["description"] == "Old description"

    def test_cover_and_addon(self, assets, scratch):
        catalog = FakeCatalog({EXISTING_ID: existing_record()})
        Uploader(catalog, scratch_dir=scratch).upload(
            UpdateItem(id=EXISTING_ID, cover_image=assets["cover"], addon=assets["addon"])
        )
        _, _, sent = catalog.saves[0]
        assert sorted(sent) == ["image", "item", "thumbnail"]

    def test_removal_flags(self, scratch):
        catalog = FakeCatalog({EXISTING_ID: existing_record()})
        Uploader(catalog, scratch_dir=scratch).upload(
            UpdateItem(id=EXISTING_ID, remove_category=True, remove_rich_description=True)
        )
        _, _, sent = catalog.saves[0]
        assert sent == {"category": None, "localizedHTMLReferences": None}

    def test_rich_description_replaces_reference(self, assets, scratch):
        catalog = FakeCatalog({EXISTING_ID: existing_record()})
        rich = RichDescription(base_text="Base", cover_image=DescriptionImage(assets["cover"]))
        Uploader(catalog, scratch_dir=scratch).upload(UpdateItem(id=EXISTING_ID, rich_description=rich))
        html_record, _, _ = catalog.saves[0]
        _, _, sent = catalog.saves[1]
        assert sent == {"localizedHTMLReferences": html_reference(html_record.record_name)}


class TestErrorBoundary:
    def test_validation_errors_pass_through(self):
        class Raising(FakeCatalog):
            def fetch_record(self, record_name):
                raise MissingFieldError("title")

        with pytest.raises(MissingFieldError):
            Uploader(Raising()).upload(RemoveItem(id=EXISTING_ID))

    def test_requests_errors_are_remote_failures(self):
        class Raising(FakeCatalog):
            def fetch_record(self, record_name):
                raise requests.ConnectionError("offline")

        with pytest.raises(RemoteServiceError):
            Uploader(Raising()).upload(RemoveItem(id=EXISTING_ID))

    def test_anything_else_is_unknown(self):
        class Raising(FakeCatalog):
            def fetch_record(self, record_name):
                raise KeyError("surprise")

        with pytest.raises(UnknownUploadError):
            Uploader(Raising()).upload(RemoveItem(id=EXISTING_ID))


def test_download_http(monkeypatch, scratch):
    class Response:
        content = b"remote"

        def raise_for_status(self):
            pass

    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return Response()

    monkeypatch.setattr(requests, "get", fake_get)
    path = download("https://example.com/a.bin", scratch, timeout=5)
    assert path.read_bytes() == b"remote"
    assert calls == [("https://example.com/a.bin", 5)]


def test_download_plain_path(tmp_path, scratch):
    source = tmp_path / "plain.bin"
    source.write_bytes(b"local")
    assert download(str(source), scratch).read_bytes() == b"local"
