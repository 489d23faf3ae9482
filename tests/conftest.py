import pytest
from PIL import Image

from mobile_crop_tool.models import Size


@pytest.fixture
def make_image():
    """Factory for solid-color RGB images."""
    def _make(width=400, height=300, color=(200, 120, 40), mode="RGB"):
        return Image.new(mode, (width, height), color)
    return _make


@pytest.fixture
def split_image():
    """200×100 image: left half red, right half blue."""
    img = Image.new("RGB", (200, 100), (255, 0, 0))
    img.paste((0, 0, 255), (100, 0, 200, 100))
    return img


@pytest.fixture
def display_size():
    return Size(400, 300)
