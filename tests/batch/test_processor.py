from __future__ import annotations

import io
import os

import pytest
from PIL import Image

from fixtures import make_image
from vault_images.batch.config import (
    ConversionSettings,
    EnlargeReduce,
    ResizeMode,
)
from vault_images.batch.processor import (
    ImageProcessingError,
    PillowImageProcessor,
    compute_dimensions,
)


def _open(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


@pytest.mark.parametrize(
    "mode, size, expected",
    [
        (ResizeMode.NONE, (1000, 500), (1000, 500)),
        (ResizeMode.FIT, (1200, 600), (600, 300)),
        (ResizeMode.FIT, (600, 1200), (400, 800)),
        (ResizeMode.FILL, (1200, 600), (1600, 800)),
        (ResizeMode.LONGEST_EDGE, (1600, 800), (800, 400)),
        (ResizeMode.LONGEST_EDGE, (800, 1600), (400, 800)),
        (ResizeMode.SHORTEST_EDGE, (1600, 1000), (1280, 800)),
        (ResizeMode.WIDTH, (1200, 300), (600, 150)),
        (ResizeMode.HEIGHT, (400, 1600), (200, 800)),
    ],
)
def test_compute_dimensions(mode, size, expected):
    settings = ConversionSettings(resize_mode=mode)

    assert compute_dimensions(*size, settings) == expected


def test_compute_dimensions_reduce_never_enlarges():
    settings = ConversionSettings(
        resize_mode=ResizeMode.WIDTH,
        enlarge_or_reduce=EnlargeReduce.REDUCE,
    )

    assert compute_dimensions(300, 200, settings) == (300, 200)
    assert compute_dimensions(1200, 800, settings) == (600, 400)


def test_compute_dimensions_enlarge_never_reduces():
    settings = ConversionSettings(
        resize_mode=ResizeMode.WIDTH,
        enlarge_or_reduce=EnlargeReduce.ENLARGE,
    )

    assert compute_dimensions(1200, 800, settings) == (1200, 800)
    assert compute_dimensions(300, 200, settings) == (600, 400)


def test_compute_dimensions_never_returns_zero():
    settings = ConversionSettings(resize_mode=ResizeMode.WIDTH)

    assert compute_dimensions(6000, 2, settings) == (600, 1)


def test_converts_png_to_webp():
    processor = PillowImageProcessor()
    source = make_image("png", (64, 48))

    result = processor.transform(
        source, ConversionSettings(convert_to="webp"), source_extension="png"
    )

    assert result.extension == "webp"
    image = _open(result.data)
    assert image.format == "WEBP"
    assert image.size == (64, 48)


def test_converts_rgba_png_to_jpeg_with_flattened_alpha():
    buffer = io.BytesIO()
    Image.new("RGBA", (10, 10), (0, 0, 0, 0)).save(buffer, format="PNG")

    result = PillowImageProcessor().transform(
        buffer.getvalue(),
        ConversionSettings(convert_to="jpeg", allow_larger_files=True),
        source_extension="png",
    )

    image = _open(result.data)
    assert result.extension == "jpeg"
    assert image.mode == "RGB"
    assert image.getpixel((5, 5)) == (255, 255, 255)


def test_resizes_when_configured():
    result = PillowImageProcessor().transform(
        make_image("jpg", (1200, 600)),
        ConversionSettings(convert_to="webp", resize_mode=ResizeMode.FIT),
        source_extension="jpg",
    )

    assert _open(result.data).size == (600, 300)


def test_keep_original_format_uses_source_extension():
    result = PillowImageProcessor().transform(
        make_image("jpg", (100, 100)),
        ConversionSettings(
            convert_to="disabled",
            resize_mode=ResizeMode.WIDTH,
            desired_width=50,
        ),
        source_extension="JPG",
    )

    assert result.extension == "jpg"
    image = _open(result.data)
    assert image.format == "JPEG"
    assert image.size == (50, 50)


def test_lossless_passthrough_returns_input_bytes():
    source = make_image("png")

    result = PillowImageProcessor().transform(
        source,
        ConversionSettings(convert_to="disabled", quality=1.0),
        source_extension="png",
    )

    assert result.data == source


def test_larger_output_in_same_format_keeps_original():
    buffer = io.BytesIO()
    noise = Image.frombytes("RGB", (200, 200), os.urandom(200 * 200 * 3))
    noise.save(buffer, format="JPEG", quality=60)
    source = buffer.getvalue()
    settings = ConversionSettings(convert_to="jpeg", quality=1.0)

    kept = PillowImageProcessor().transform(
        source, settings, source_extension="jpg"
    )
    allowed = PillowImageProcessor().transform(
        source,
        ConversionSettings(
            convert_to="jpeg", quality=1.0, allow_larger_files=True
        ),
        source_extension="jpg",
    )

    assert kept.data == source
    assert len(allowed.data) > len(source)


def test_decode_failure_raises_processing_error():
    with pytest.raises(ImageProcessingError):
        PillowImageProcessor().transform(
            b"not an image",
            ConversionSettings(),
            source_extension="png",
        )


def test_supports_raster_formats_only():
    processor = PillowImageProcessor()

    assert processor.supports("PNG")
    assert processor.supports("jpg")
    assert processor.supports("tif")
    assert not processor.supports("svg")
    assert not processor.supports("heic")
