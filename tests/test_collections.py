from datetime import datetime
from pathlib import Path

import pytest
from PIL import Image

from bollard.build import Site
from bollard.collections import DerivativeCollection, PageList
from bollard.config import CollectionConfig
from bollard.defaults import DefaultsRule
from bollard.errors import AssetMetadataError, ConfigurationError
from bollard.images import Size
from bollard.metadata import MetadataKey
from bollard.paths import SitePaths


class FakeHandle:
    def __init__(self, values):
        self.values = values

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return None

    def get_value(self, key):
        return self.values.get(key)


class FakeStore:
    """Metadata store answering from a dict keyed by file name."""

    def __init__(self, records):
        self.records = records

    def open(self, path: Path):
        if path.name not in self.records:
            raise AssetMetadataError(path, "file not found")
        return FakeHandle(self.records[path.name])


def record(title, date, size=(40, 30), orientation=1, extra=None):
    values = {
        MetadataKey.TITLE: title,
        MetadataKey.DATE_TAKEN: date,
        MetadataKey.WIDTH: size[0],
        MetadataKey.HEIGHT: size[1],
        MetadataKey.ORIENTATION: orientation,
    }
    values.update(extra or {})
    return values


def create_photo_site(tmp_path, records, layout="{{ page.Title }}", rules=()):
    src = tmp_path / "src"
    photos = src / "_photos"
    photos.mkdir(parents=True)
    for name in records:
        Image.new("RGB", (40, 30), color="green").save(photos / name, format="JPEG")
    (src / "_layouts").mkdir()
    (src / "_layouts" / "photo.html.jinja").write_text(layout, encoding="utf-8")

    site = Site(SitePaths(src, tmp_path / "out"), url="https://example.com", rules=rules)
    config = CollectionConfig(
        name="photos",
        source_dir=photos,
        layout="photo",
        sizes={"Thumb": Size(20, 15), "Post": Size(40, 30)},
    )
    store = FakeStore(records)
    collection = DerivativeCollection(site, config, store)
    site.add_collection(collection)
    return site, collection, store


def test_prep_sorts_by_date_and_assigns_indices(tmp_path):
    site, collection, _ = create_photo_site(
        tmp_path,
        {
            "a.jpg": record("The Old Bridge", datetime(2020, 1, 2)),
            "b.jpg": record("Sunset Bay", datetime(2020, 1, 1)),
            "c.jpg": record("Sunset Bay", datetime(2020, 1, 1)),
        },
    )
    collection.prep()

    names = [page["Name"] for page in collection.pages]
    assert names == ["2020-01-01_SunsetBay", "2020-01-01_SunsetBay", "2020-01-02_OldBridge"]
    assert [page["Index"] for page in collection.pages] == [0, 1, 2]
    assert collection.failures == []


def test_prep_warns_when_two_photos_share_a_name(tmp_path, caplog):
    site, collection, _ = create_photo_site(
        tmp_path,
        {
            "b.jpg": record("Sunset Bay", datetime(2020, 1, 1)),
            "c.jpg": record("Sunset Bay", datetime(2020, 1, 1)),
        },
    )
    collection.prep()

    assert [page["Name"] for page in collection.pages] == ["2020-01-01_SunsetBay"] * 2
    assert "photos/c.jpg: name 2020-01-01_SunsetBay is already used by photos/b.jpg" in caplog.text
    # the second photo finds the first one's images already in place
    assert collection.generated_count == 1
    images = tmp_path / "out" / "photos" / "images"
    assert sorted(p.name for p in images.iterdir()) == [
        "2020-01-01_SunsetBay_20x15.jpg",
        "2020-01-01_SunsetBay_40x30.jpg",
    ]


def test_prep_builds_page_records(tmp_path):
    site, collection, _ = create_photo_site(
        tmp_path,
        {
            "a.jpg": record(
                "The Old Bridge",
                datetime(2020, 1, 2, 9, 30),
                extra={MetadataKey.COMMENT: "Misty", MetadataKey.KEYWORDS: ["river"]},
            )
        },
        rules=[DefaultsRule(collection="photos", values={"Author": "Me"})],
    )
    collection.prep()

    page = collection.pages[0]
    assert page["Author"] == "Me"
    assert page["Title"] == "The Old Bridge"
    assert page["Comment"] == "Misty"
    assert page["Tags"] == ["river"]
    assert page["Date"] == datetime(2020, 1, 2, 9, 30)
    assert page["Collection"] == "photos"
    assert page["Path"] == "/photos/2020-01-02_OldBridge.html"
    assert page["Url"] == "https://example.com/photos/2020-01-02_OldBridge.html"
    assert page["ThumbImage"] == "/photos/images/2020-01-02_OldBridge_20x15.jpg"
    assert (page["ThumbWidth"], page["ThumbHeight"]) == (10, 7)
    assert page["PostImage"] == "/photos/images/2020-01-02_OldBridge_40x30.jpg"
    assert (page["PostWidth"], page["PostHeight"]) == (20, 15)

    images = tmp_path / "out" / "photos" / "images"
    assert (images / "2020-01-02_OldBridge_20x15.jpg").exists()
    assert (images / "2020-01-02_OldBridge_40x30.jpg").exists()


def test_prep_is_idempotent(tmp_path):
    site, collection, _ = create_photo_site(
        tmp_path, {"a.jpg": record("Bridge", datetime(2020, 1, 2))}
    )
    collection.prep()
    assert collection.generated_count == 1
    images = tmp_path / "out" / "photos" / "images"
    stamps = {p.name: p.stat().st_mtime_ns for p in images.iterdir()}

    collection.prep()
    assert collection.generated_count == 0
    assert {p.name: p.stat().st_mtime_ns for p in images.iterdir()} == stamps


def test_prep_skips_photos_with_bad_metadata(tmp_path):
    site, collection, _ = create_photo_site(
        tmp_path,
        {
            "a.jpg": record("Bridge", datetime(2020, 1, 2)),
            "b.jpg": record(None, datetime(2020, 1, 3)),
            "c.jpg": record("Hill", None),
            "d.jpg": record("Lake", datetime(2020, 1, 1)),
        },
    )
    collection.prep()
    assert [page["Title"] for page in collection.pages] == ["Lake", "Bridge"]
    assert [page["Index"] for page in collection.pages] == [0, 1]
    assert [failure.source_path for failure in collection.failures] == [
        "photos/b.jpg",
        "photos/c.jpg",
    ]


def test_prep_requires_source_folder(tmp_path):
    site = Site(SitePaths(tmp_path / "src", tmp_path / "out"))
    config = CollectionConfig(name="photos", source_dir=tmp_path / "nowhere", layout="photo")
    collection = DerivativeCollection(site, config, FakeStore({}))
    with pytest.raises(ConfigurationError):
        collection.prep()


def test_render_writes_one_page_per_photo(tmp_path):
    layout = (
        "{% set prev = collection.Pages.previous(page) %}"
        "{{ page.Index }}:{{ page.Title }}:{{ collection.Pages|length }}:"
        "{{ prev.Title if prev else '-' }}"
    )
    site, collection, _ = create_photo_site(
        tmp_path,
        {
            "a.jpg": record("Bridge", datetime(2020, 1, 2)),
            "b.jpg": record("Lake", datetime(2020, 1, 1)),
        },
        layout=layout,
    )
    collection.prep()
    collection.render()

    out = tmp_path / "out" / "photos"
    assert (out / "2020-01-01_Lake.html").read_text(encoding="utf-8") == "0:Lake:2:-"
    assert (out / "2020-01-02_Bridge.html").read_text(encoding="utf-8") == "1:Bridge:2:Lake"


def test_render_isolates_failing_pages(tmp_path):
    layout = "{% if page.Index == 0 %}{{ include('missing') }}{% endif %}{{ page.Title }}"
    site, collection, _ = create_photo_site(
        tmp_path,
        {
            "a.jpg": record("Bridge", datetime(2020, 1, 2)),
            "b.jpg": record("Lake", datetime(2020, 1, 1)),
        },
        layout=layout,
    )
    collection.prep()
    collection.render()

    out = tmp_path / "out" / "photos"
    assert not (out / "2020-01-01_Lake.html").exists()
    assert (out / "2020-01-02_Bridge.html").read_text(encoding="utf-8") == "Bridge"
    assert [f.source_path for f in collection.failures] == ["/photos/2020-01-01_Lake.html"]


def test_render_reports_missing_layout(tmp_path):
    site, collection, _ = create_photo_site(
        tmp_path, {"a.jpg": record("Bridge", datetime(2020, 1, 2))}
    )
    collection.layout = "nope"
    collection.prep()
    collection.render()
    assert len(collection.failures) == 1
    assert 'layout="nope"' in collection.failures[0].message


def test_page_list_helpers():
    pages = [
        {"Title": "a", "Date": datetime(2020, 1, 1), "Tags": ["x"]},
        {"Title": "b", "Date": datetime(2020, 1, 3), "Tags": []},
        {"Title": "c", "Date": datetime(2020, 1, 2), "Tags": ["x", "y"]},
    ]
    page_list = PageList(pages)
    assert len(page_list) == 3
    assert [p["Title"] for p in page_list.with_tag("x")] == ["a", "c"]
    assert [p["Title"] for p in page_list.latest(2)] == ["b", "c"]
    assert [p["Title"] for p in page_list.sorted(reverse=False)] == ["a", "c", "b"]
    assert page_list.previous(pages[0]) is None
    assert page_list.next(pages[0]) is pages[1]
    assert page_list.next(pages[2]) is None
    assert page_list.previous({"Title": "elsewhere"}) is None
