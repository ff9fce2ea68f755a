from __future__ import annotations

import pytest

from vault_images.batch import formats


@pytest.mark.parametrize(
    "name",
    ["a.png", "b.JPG", "dir/c.jpeg", "d.webp", "e.heic", "f.svg", "g.tiff"],
)
def test_supported_image_names(name):
    assert formats.is_supported(name)


@pytest.mark.parametrize("name", ["note.md", "board.canvas", "clip.mp4", "x"])
def test_unsupported_names(name):
    assert not formats.is_supported(name)


def test_extension_of_is_lowercase_without_dot():
    assert formats.extension_of("Photos/IMG.JPEG") == "jpeg"
    assert formats.extension_of("README") == ""


@pytest.mark.parametrize(
    "left, right",
    [("jpg", "jpeg"), ("JPG", ".jpeg"), ("tif", "tiff"), ("heif", "heic")],
)
def test_same_format_aliases(left, right):
    assert formats.same_format(left, right)


def test_different_formats_do_not_match():
    assert not formats.same_format("png", "webp")


def test_extension_for_format():
    assert formats.extension_for_format("webp") == "webp"
    assert formats.extension_for_format("jpg") == "jpeg"
    with pytest.raises(ValueError):
        formats.extension_for_format("gif")
