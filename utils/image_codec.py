"""Inline preview encoding for complaint images."""
import base64
import io
import math
from dataclasses import dataclass

from PIL import Image, ImageOps

QUALITY_STEP = 0.08
QUALITY_FLOOR = 0.4
# base64 text is 4/3 the size of the bytes it carries
BASE64_EXPANSION = 0.75


class ImageCodecError(Exception):
    """Raised when an image cannot be decoded or re-encoded."""


@dataclass(frozen=True)
class InlinePreview:
    data_url: str
    width: int
    height: int
    quality: float

    @property
    def estimated_bytes(self) -> int:
        return int(len(self.data_url) * BASE64_EXPANSION)


def _fail_if(condition: bool, message: str) -> None:
    if condition:
        raise ImageCodecError(message)


def scaled_size(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    ratio = min(1.0, max_width / width, max_height / height)
    return max(1, math.floor(width * ratio)), max(1, math.floor(height * ratio))


def _flatten(img: Image.Image) -> Image.Image:
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return img.convert("RGB")


def _to_data_url(img: Image.Image, quality: float) -> str:
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=max(1, min(95, round(quality * 100))))
    return "data:image/jpeg;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def encode_inline_preview(
    image_bytes: bytes,
    max_width: int = 900,
    max_height: int = 900,
    quality: float = 0.72,
    max_bytes: int = 350_000,
) -> InlinePreview:
    """Downscale and JPEG-encode an image into a data URL within ``max_bytes``.

    Quality drops by ``QUALITY_STEP`` until the estimate fits or the floor is
    reached; the floor result is returned even when still over budget.
    """
    _fail_if(not image_bytes, "Empty image payload")
    _fail_if(max_width < 1 or max_height < 1, "Preview bounds must be positive")
    try:
        with Image.open(io.BytesIO(image_bytes)) as src:
            src.load()
            img = ImageOps.exif_transpose(src)
            width, height = img.size
            _fail_if(width < 1 or height < 1, "Image has no pixels")
            target = scaled_size(width, height, max_width, max_height)
            if target != (width, height):
                img = img.resize(target, Image.Resampling.LANCZOS)
            img = _flatten(img)

            q = quality
            out = _to_data_url(img, q)
            while len(out) * BASE64_EXPANSION > max_bytes and q > QUALITY_FLOOR:
                q = max(QUALITY_FLOOR, round(q - QUALITY_STEP, 2))
                out = _to_data_url(img, q)
    except ImageCodecError:
        raise
    except Exception as exc:
        raise ImageCodecError("Image preview encoding failed") from exc
    return InlinePreview(data_url=out, width=target[0], height=target[1], quality=q)
