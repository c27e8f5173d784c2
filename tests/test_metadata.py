import math
from datetime import datetime

import pytest
from PIL import Image

from bollard.errors import AssetMetadataError
from bollard.images import Size
from bollard.metadata import (
    MetadataKey,
    MetadataStore,
    _decode_user_comment,
    _decode_xp,
    _gps_degrees,
    read_asset_metadata,
)


def make_photo(path, size=(40, 20), title="The Old Bridge", date="2021:06:01 10:00:00", orientation=1):
    image = Image.new("RGB", size, color="blue")
    exif = Image.Exif()
    if title is not None:
        exif[0x010E] = title
    if date is not None:
        exif[0x0132] = date
    exif[0x0112] = orientation
    image.save(path, format="JPEG", exif=exif.tobytes())
    return path


def test_store_reads_exif_fields(tmp_path):
    photo = make_photo(tmp_path / "a.jpg")
    with MetadataStore().open(photo) as handle:
        assert handle.get_value(MetadataKey.TITLE) == "The Old Bridge"
        assert handle.get_value(MetadataKey.DATE_TAKEN) == datetime(2021, 6, 1, 10, 0)
        assert handle.get_value(MetadataKey.ORIENTATION) == 1
        assert handle.get_value(MetadataKey.WIDTH) == 40
        assert handle.get_value(MetadataKey.HEIGHT) == 20
        assert handle.get_value(MetadataKey.LATITUDE) is None
        assert handle.get_value(MetadataKey.KEYWORDS) is None


def test_store_reports_display_dimensions_for_rotated_photos(tmp_path):
    photo = make_photo(tmp_path / "a.jpg", orientation=6)
    with MetadataStore().open(photo) as handle:
        assert handle.get_value(MetadataKey.WIDTH) == 20
        assert handle.get_value(MetadataKey.HEIGHT) == 40


def test_store_rejects_missing_and_unreadable_files(tmp_path):
    with pytest.raises(AssetMetadataError):
        MetadataStore().open(tmp_path / "missing.jpg")
    bogus = tmp_path / "bogus.jpg"
    bogus.write_bytes(b"not an image")
    with pytest.raises(AssetMetadataError):
        MetadataStore().open(bogus)


def test_read_asset_metadata(tmp_path):
    photo = make_photo(tmp_path / "a.jpg", orientation=6)
    metadata = read_asset_metadata(MetadataStore(), photo)
    assert metadata.title == "The Old Bridge"
    assert metadata.date_taken == datetime(2021, 6, 1, 10, 0)
    assert metadata.size == Size(20, 40)
    assert metadata.orientation == 6
    assert metadata.comment == ""
    assert math.isnan(metadata.latitude)
    assert math.isnan(metadata.longitude)
    assert metadata.tags == []


@pytest.mark.parametrize("missing", ["title", "date"])
def test_read_asset_metadata_requires_title_and_date(tmp_path, missing):
    kwargs = {missing: None}
    photo = make_photo(tmp_path / "a.jpg", **kwargs)
    with pytest.raises(AssetMetadataError):
        read_asset_metadata(MetadataStore(), photo)


def test_orientation_7_is_treated_as_upright(tmp_path, caplog):
    photo = make_photo(tmp_path / "a.jpg", orientation=7)
    with caplog.at_level("WARNING"):
        metadata = read_asset_metadata(MetadataStore(), photo)
    assert metadata.orientation == 1
    assert metadata.size == Size(40, 20)
    assert "orientation 7" in caplog.text


def test_decode_xp_tags():
    assert _decode_xp("Sunset; Beach".encode("utf-16-le") + b"\x00\x00") == "Sunset; Beach"
    assert _decode_xp(tuple("Hi".encode("utf-16-le"))) == "Hi"
    assert _decode_xp(None) is None


def test_decode_user_comment():
    assert _decode_user_comment(b"ASCII\x00\x00\x00Foggy morning") == "Foggy morning"
    assert _decode_user_comment(b"ASCII\x00\x00\x00\x00\x00") is None


def test_gps_degrees():
    assert _gps_degrees((51.0, 30.0, 0.0), "N") == pytest.approx(51.5)
    assert _gps_degrees((0.0, 7.0, 30.0), "W") == pytest.approx(-0.125)
    assert _gps_degrees(None, "N") is None
