"""Image transform capability and its Pillow implementation."""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from .config import ConversionSettings, EnlargeReduce, ResizeMode
from .formats import extension_for_format, normalize_format


class ImageProcessingError(RuntimeError):
    """Raised when image bytes cannot be decoded or encoded."""


@dataclass(frozen=True)
class ProcessedImage:
    """Transformed bytes plus the extension they should be stored under."""

    data: bytes
    extension: str


class ImageProcessor(Protocol):
    def supports(self, extension: str) -> bool: ...

    def transform(
        self,
        data: bytes,
        settings: ConversionSettings,
        *,
        source_extension: str,
    ) -> ProcessedImage: ...


def compute_dimensions(
    width: int,
    height: int,
    settings: ConversionSettings,
) -> tuple[int, int]:
    """Return the output size for a ``width`` x ``height`` image."""

    mode = settings.resize_mode
    if mode is ResizeMode.NONE or width <= 0 or height <= 0:
        return width, height

    aspect = width / height
    target_w, target_h = float(width), float(height)
    box_w, box_h = settings.desired_width, settings.desired_height
    edge = settings.desired_length

    if mode is ResizeMode.FIT:
        if aspect > box_w / box_h:
            target_w, target_h = box_w, box_w / aspect
        else:
            target_w, target_h = box_h * aspect, box_h
    elif mode is ResizeMode.FILL:
        if aspect > box_w / box_h:
            target_w, target_h = box_h * aspect, box_h
        else:
            target_w, target_h = box_w, box_w / aspect
    elif mode is ResizeMode.LONGEST_EDGE:
        if width > height:
            target_w, target_h = edge, edge / aspect
        else:
            target_w, target_h = edge * aspect, edge
    elif mode is ResizeMode.SHORTEST_EDGE:
        if width < height:
            target_w, target_h = edge, edge / aspect
        else:
            target_w, target_h = edge * aspect, edge
    elif mode is ResizeMode.WIDTH:
        target_w, target_h = box_w, box_w / aspect
    elif mode is ResizeMode.HEIGHT:
        target_w, target_h = box_h * aspect, box_h

    policy = settings.enlarge_or_reduce
    if policy is EnlargeReduce.REDUCE:
        if not (width > target_w or height > target_h):
            return width, height
    elif policy is EnlargeReduce.ENLARGE:
        if not (width < target_w and height < target_h):
            return width, height

    return max(1, round(target_w)), max(1, round(target_h))


class PillowImageProcessor:
    """Decode, resize and re-encode images with Pillow."""

    _PILLOW_FORMATS = {
        "jpeg": "JPEG",
        "png": "PNG",
        "webp": "WEBP",
        "gif": "GIF",
        "bmp": "BMP",
        "tiff": "TIFF",
    }

    def supports(self, extension: str) -> bool:
        return normalize_format(extension) in self._PILLOW_FORMATS

    def transform(
        self,
        data: bytes,
        settings: ConversionSettings,
        *,
        source_extension: str,
    ) -> ProcessedImage:
        if settings.keep_original_format:
            out_extension = source_extension.lower()
            out_format = self._pillow_format(source_extension)
        else:
            out_extension = extension_for_format(settings.convert_to)
            out_format = self._pillow_format(settings.convert_to)

        if (
            settings.keep_original_format
            and settings.lossless
            and not settings.resizes
        ):
            return ProcessedImage(data, out_extension)

        try:
            with Image.open(io.BytesIO(data)) as opened:
                opened.load()
                image = opened.copy()
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise ImageProcessingError(f"Cannot decode image: {exc}") from exc
        except Image.DecompressionBombError as exc:
            raise ImageProcessingError(str(exc)) from exc

        size = compute_dimensions(image.width, image.height, settings)
        resized = size != image.size
        if resized:
            image = image.resize(size, Image.Resampling.LANCZOS)

        encoded = self._encode(image, out_format, settings.quality)

        same_container = normalize_format(out_extension) == normalize_format(
            source_extension
        )
        if (
            not settings.allow_larger_files
            and same_container
            and not resized
            and len(encoded) > len(data)
        ):
            return ProcessedImage(data, out_extension)
        return ProcessedImage(encoded, out_extension)

    def _pillow_format(self, extension: str) -> str:
        try:
            return self._PILLOW_FORMATS[normalize_format(extension)]
        except KeyError as exc:
            raise ImageProcessingError(
                f"Unsupported image format '{extension}'."
            ) from exc

    def _encode(self, image: Image.Image, fmt: str, quality: float) -> bytes:
        options: dict[str, object] = {}
        if fmt == "JPEG":
            image = _flatten_alpha(image)
            options = {"quality": round(quality * 100), "optimize": True}
        elif fmt == "WEBP":
            if image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGBA")
            if quality >= 1:
                options = {"lossless": True}
            else:
                options = {"quality": round(quality * 100)}
        elif fmt == "PNG":
            options = {"optimize": True}

        buffer = io.BytesIO()
        try:
            image.save(buffer, format=fmt, **options)
        except (OSError, ValueError, KeyError) as exc:
            raise ImageProcessingError(
                f"Cannot encode image as {fmt}: {exc}"
            ) from exc
        return buffer.getvalue()


def _flatten_alpha(image: Image.Image) -> Image.Image:
    if image.mode in ("RGBA", "LA", "P"):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


__all__ = [
    "ImageProcessingError",
    "ImageProcessor",
    "PillowImageProcessor",
    "ProcessedImage",
    "compute_dimensions",
]
