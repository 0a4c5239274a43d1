"""
Texture codec

glTF core only allows PNG and JPEG images. Host texture bytes in any other
format Pillow can read (BMP, TGA, TIFF, WebP, ...) are re-encoded.
"""

import io
import logging
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .errors import ExportError
from .host import TextureImage
from .settings import ImageFormat

logger = logging.getLogger(__name__)

MIME_PNG = "image/png"
MIME_JPEG = "image/jpeg"

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
JPEG_MAGIC = b"\xff\xd8\xff"


def sniff_mime(data: bytes) -> Optional[str]:
    if data.startswith(PNG_MAGIC):
        return MIME_PNG
    if data.startswith(JPEG_MAGIC):
        return MIME_JPEG
    return None


def encode_texture(image: TextureImage, image_format: ImageFormat = ImageFormat.KEEP,
                   jpeg_quality: int = 90) -> Tuple[bytes, str]:
    """Return (encoded bytes, mime type) ready to embed"""
    mime = sniff_mime(image.data) or image.mime_type

    if image_format == ImageFormat.KEEP:
        if mime in (MIME_PNG, MIME_JPEG):
            return image.data, mime
        target = MIME_PNG
    else:
        target = MIME_PNG if image_format == ImageFormat.PNG else MIME_JPEG
        if mime == target:
            return image.data, mime

    try:
        with Image.open(io.BytesIO(image.data)) as img:
            img.load()
            if target == MIME_JPEG:
                if img.mode in ("RGBA", "LA", "P"):
                    logger.warning("Texture '%s': JPEG has no alpha channel, dropping it", image.name)
                img = img.convert("RGB")
            elif img.mode not in ("RGB", "RGBA", "L", "LA"):
                img = img.convert("RGBA")

            buf = io.BytesIO()
            if target == MIME_JPEG:
                img.save(buf, format="JPEG", quality=jpeg_quality)
            else:
                img.save(buf, format="PNG", optimize=True)
    except (UnidentifiedImageError, OSError) as e:
        raise ExportError(f"Texture '{image.name}' could not be decoded: {e}") from e

    logger.debug("Re-encoded texture '%s' (%s -> %s)", image.name, mime, target)
    return buf.getvalue(), target
