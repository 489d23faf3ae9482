import io

import pytest
from PIL import Image

from mobile_crop_tool.errors import InvalidDimensions, SourceNotReady
from mobile_crop_tool.models import MOBILE_SPEC, CropRect, compute_crop
from mobile_crop_tool.render import render_output, resample


def test_resample_produces_fixed_size(make_image):
    src = make_image(4000, 3000)
    crop = compute_crop(4000, 3000, MOBILE_SPEC.ratio)
    out = resample(src, crop, 450, 800)
    assert out.size == (450, 800)
    assert out.mode == "RGB"


def test_resample_samples_the_crop_region(split_image):
    left = resample(split_image, CropRect(0, 0, 50, 100), 45, 80)
    right = resample(split_image, CropRect(150, 0, 50, 100), 45, 80)
    assert left.getpixel((22, 40)) == pytest.approx((255, 0, 0), abs=2)
    assert right.getpixel((22, 40)) == pytest.approx((0, 0, 255), abs=2)


def test_resample_accepts_fractional_box(make_image):
    src = make_image(1000, 2000)
    crop = compute_crop(1000, 2000, MOBILE_SPEC.ratio)
    assert crop.y != int(crop.y)
    assert resample(src, crop, 450, 800).size == (450, 800)


def test_resample_converts_alpha_sources(make_image):
    src = make_image(160, 90, color=(10, 20, 30, 128), mode="RGBA")
    out = resample(src, compute_crop(160, 90, MOBILE_SPEC.ratio), 45, 80)
    assert out.mode == "RGB"


def test_resample_refuses_missing_source():
    with pytest.raises(SourceNotReady):
        resample(None, CropRect(0, 0, 9, 16), 450, 800)


@pytest.mark.parametrize("crop,size", [
    (CropRect(0, 0, 0, 16), (450, 800)),
    (CropRect(0, 0, 9, 16), (0, 800)),
])
def test_resample_rejects_empty_sizes(make_image, crop, size):
    with pytest.raises(InvalidDimensions):
        resample(make_image(), crop, *size)


def test_render_output_encodes_jpeg(make_image):
    src = make_image(1920, 1080)
    crop = compute_crop(1920, 1080, MOBILE_SPEC.ratio)
    output = render_output(src, crop, MOBILE_SPEC)

    assert output.size == (450, 800)
    assert output.crop == crop
    with Image.open(io.BytesIO(output.data)) as decoded:
        assert decoded.format == "JPEG"
        assert decoded.size == (450, 800)
