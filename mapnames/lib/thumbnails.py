from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from ..errors import TransientIOFailure

logger = logging.getLogger(__name__)

DEFAULT_SIZE: Tuple[int, int] = (640, 360)


class ThumbnailError(ValueError):
    pass


def render_thumbnail(data: bytes, destination: Path, size: Tuple[int, int] = DEFAULT_SIZE) -> Path:
    """Decode a preview image, crop-fit it to *size* and save it as PNG."""

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            rgb = img.convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise ThumbnailError(f"preview is not a readable image: {e}") from e

    fitted = ImageOps.fit(rgb, size, method=Image.Resampling.LANCZOS)
    destination.parent.mkdir(parents=True, exist_ok=True)
    fitted.save(destination, format="PNG")
    logger.info("Wrote thumbnail %s (%dx%d)", destination, size[0], size[1])
    return destination


def fetch_thumbnail(client, url: str, destination: Path, size: Tuple[int, int] = DEFAULT_SIZE) -> Path:
    """Download *url* with *client* (anything with ``download_bytes``) and render it."""

    data = client.download_bytes(url)
    if not data:
        raise TransientIOFailure(f"empty preview download: {url}", context=url)
    return render_thumbnail(data, destination, size)
