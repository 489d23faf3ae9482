import io

import pytest
from PIL import Image

from mobile_crop_tool.export import default_filename, encode_jpeg, output_filename, save_output

NOW = 1_700_000_000.0


def test_encode_jpeg_round_trips_size(make_image):
    data = encode_jpeg(make_image(450, 800))
    with Image.open(io.BytesIO(data)) as img:
        assert img.format == "JPEG"
        assert img.size == (450, 800)


def test_encode_jpeg_handles_rgba(make_image):
    data = encode_jpeg(make_image(10, 10, color=(1, 2, 3, 4), mode="RGBA"))
    assert data[:2] == b"\xff\xd8"


def test_default_filename_uses_millisecond_timestamp():
    assert default_filename(NOW) == "mobile-cropped-1700000000000.jpg"


@pytest.mark.parametrize("name", ["", "   ", None, "???", "..."])
def test_blank_names_fall_back_to_timestamp(name):
    assert output_filename(name, now=NOW) == "mobile-cropped-1700000000000.jpg"


@pytest.mark.parametrize("name,expected", [
    ("holiday", "holiday.jpg"),
    ("  holiday  ", "holiday.jpg"),
    ("holiday.JPG", "holiday.JPG"),
    ("holiday.jpeg", "holiday.jpeg"),
    ("holiday.png", "holiday.png.jpg"),
    ("my:photo?", "myphoto.jpg"),
    ("../../etc/passwd", "etcpasswd.jpg"),
    ("CON", "_CON.jpg"),
])
def test_output_filename_sanitizes(name, expected):
    assert output_filename(name, now=NOW) == expected


def test_output_filename_truncates_long_stems():
    assert output_filename("a" * 80) == "a" * 50 + ".jpg"


def test_save_output_never_overwrites(tmp_path):
    first = save_output(b"one", tmp_path, "shot")
    second = save_output(b"two", tmp_path, "shot")

    assert first.name == "shot.jpg"
    assert second.name == "shot-01.jpg"
    assert first.read_bytes() == b"one"
    assert second.read_bytes() == b"two"


def test_save_output_creates_directory(tmp_path):
    out = save_output(b"x", tmp_path / "new" / "dir", "")
    assert out.parent == tmp_path / "new" / "dir"
    assert out.name.startswith("mobile-cropped-")


@pytest.mark.parametrize("name", ["Holiday.JPG", "holiday.Jpeg"])
def test_output_filename_keeps_user_extension_case(name):
    assert output_filename(name, now=NOW) == name
