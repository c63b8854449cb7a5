import asyncio
from io import BytesIO

import numpy as np
import pytest
from PIL import Image

from geoguardian.exceptions import DecodeError
from geoguardian.services.blob_store import InMemoryBlobStore
from geoguardian.services.change_detection import compare_images, detect_changes, render_diff

from conftest import make_image


def test_identical_images_report_no_change():
    image = make_image(seed=3)

    report = detect_changes(image, image)

    assert report.change_percentage == 0
    assert report.changed_pixel_count == 0
    assert report.total_pixel_count == 64 * 64
    assert report.severity == "low"
    assert report.change_type == "minor"


def test_noise_below_threshold_is_not_change():
    report = detect_changes(make_image(seed=1), make_image(seed=2))

    assert report.change_percentage == 0


def test_fully_different_images_report_total_change():
    before = make_image(base=(0, 0, 0))
    after = make_image(base=(240, 240, 240))

    report = detect_changes(before, after)

    assert report.change_percentage == 100
    assert report.severity == "high"
    assert report.change_type == "significant"
    assert report.summary.startswith("CRITICAL: 100.00% change detected")


def test_partial_change_is_quantified():
    before = make_image(seed=1)
    # 24 x 24 block out of 64 x 64 pixels
    after = make_image(seed=2, block=(0, 0, 24, 24))

    report = detect_changes(before, after)

    assert report.changed_pixel_count == 576
    assert report.change_percentage == 14.06
    assert report.severity == "medium"
    assert report.change_type == "moderate"


def test_images_are_normalized_to_the_smaller_size():
    before = make_image(size=(64, 64))
    after = make_image(size=(32, 48))

    report = detect_changes(before, after)

    assert report.total_pixel_count == 32 * 48


def test_alpha_channel_is_ignored():
    buffer = BytesIO()
    Image.new("RGBA", (40, 40), (10, 200, 10, 0)).save(buffer, format="PNG")
    transparent = buffer.getvalue()
    buffer = BytesIO()
    Image.new("RGBA", (40, 40), (10, 200, 10, 255)).save(buffer, format="PNG")
    opaque = buffer.getvalue()

    assert detect_changes(transparent, opaque).change_percentage == 0


def test_undecodable_input_raises_decode_error():
    with pytest.raises(DecodeError):
        detect_changes(b"definitely not an image", make_image())


def test_empty_input_raises_decode_error():
    with pytest.raises(DecodeError):
        detect_changes(make_image(), b"")


def test_oversized_image_raises_decode_error(monkeypatch):
    image = make_image()
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)

    with pytest.raises(DecodeError):
        detect_changes(image, image)


def test_render_diff_highlights_changed_pixels():
    before = make_image(base=(40, 90, 40))
    after = make_image(base=(40, 90, 40), block=(0, 0, 32, 64), block_color=(100, 100, 100))

    png = render_diff(before, after, width=64, height=64)

    diff = np.asarray(Image.open(BytesIO(png)).convert("RGB"))
    assert diff.shape == (64, 64, 3)
    # changed half: red boosted, green and blue cut
    assert tuple(diff[10, 10]) == (200, 50, 50)
    # unchanged half passes through the after pixel
    assert 40 <= diff[10, 50, 0] < 50
    assert 90 <= diff[10, 50, 1] < 100


def test_render_diff_clamps_channels():
    before = make_image(base=(0, 0, 0))
    after = make_image(base=(0, 0, 0), block=(0, 0, 64, 64), block_color=(200, 30, 30))

    diff = np.asarray(Image.open(BytesIO(render_diff(before, after, 16, 16))).convert("RGB"))

    assert tuple(diff[8, 8]) == (255, 0, 0)


def test_render_diff_defaults_to_512_square():
    png = render_diff(make_image(), make_image(seed=4))

    assert Image.open(BytesIO(png)).size == (512, 512)


def test_compare_images_stores_diff():
    store = InMemoryBlobStore()

    report = asyncio.run(compare_images(make_image(seed=1), make_image(seed=2, block=(0, 0, 32, 32)), store))

    assert report.diff_image_ref is not None
    info = asyncio.run(store.stat(report.diff_image_ref))
    assert info.content_type == "image/png"
    assert info.metadata["type"] == "difference_map"


def test_compare_images_without_store_has_no_diff():
    report = asyncio.run(compare_images(make_image(), make_image()))

    assert report.diff_image_ref is None


def test_diff_failure_does_not_abort_the_report():
    class BrokenStore(InMemoryBlobStore):
        async def put(self, data, content_type, metadata=None):
            raise OSError("bucket unavailable")

    report = asyncio.run(
        compare_images(make_image(seed=1), make_image(seed=2, block=(0, 0, 32, 32)), BrokenStore())
    )

    assert report.change_percentage == 25
    assert report.diff_image_ref is None
