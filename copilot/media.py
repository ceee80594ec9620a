"""
Image attachment helpers.
"""

import base64
import re
from io import BytesIO
from pathlib import Path
from typing import Tuple, Union

from PIL import Image

MAX_WIDTH = 1024
MAX_HEIGHT = 768
JPEG_QUALITY = 90
DEFAULT_IMAGE_MIME = "image/png"

_DATA_URL_RE = re.compile(r"data:(.*);base64,")


def split_data_url(data_url: str) -> Tuple[str, str]:
    """
    Split a ``data:<mime>;base64,<payload>`` URL into MIME type and payload.

    Args:
        data_url: The encoded image as produced by ``encode_image_file``

    Returns:
        Tuple of (mime type, base64 payload). The MIME type defaults to
        image/png when the prefix cannot be parsed.
    """
    match = _DATA_URL_RE.match(data_url)
    mime_type = match.group(1) if match and match.group(1) else DEFAULT_IMAGE_MIME
    _, sep, payload = data_url.partition(",")
    return mime_type, payload if sep else data_url


def encode_image_file(source: Union[str, Path, bytes]) -> str:
    """
    Downscale an image to fit 1024x768 and encode it as a JPEG data URL.

    Args:
        source: A file path or the raw image bytes

    Returns:
        A ``data:image/jpeg;base64,...`` URL
    """
    raw = source if isinstance(source, bytes) else Path(source).read_bytes()

    with Image.open(BytesIO(raw)) as img:
        img = img.convert("RGB")
        img.thumbnail((MAX_WIDTH, MAX_HEIGHT), Image.LANCZOS)

        out = BytesIO()
        img.save(out, format="JPEG", quality=JPEG_QUALITY)

    encoded = base64.b64encode(out.getvalue()).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}"
