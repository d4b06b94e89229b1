"""
Image handling for task attachments.

Everything stored on a task is PNG: raster uploads are decoded with OpenCV and
re-encoded, SVG uploads are rasterised with CairoSVG.
"""
import logging
import re
from typing import Iterable

import cv2
import numpy as np

from ..core.exceptions import ImageTranscodeError, UploadError

logger = logging.getLogger(__name__)

PNG_MEDIA_TYPE = "image/png"
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class ImageTranscoder:
    """Validates uploaded image files and converts them to PNG bytes."""

    def __init__(self, max_size: int = 1000000, extensions: Iterable[str] = ("jpg", "jpeg", "png", "svg")):
        self.max_size = max_size
        self.extensions = tuple(extensions)
        self._filename_pattern = re.compile(
            r"\.(%s)\Z" % "|".join(re.escape(ext) for ext in self.extensions),
            re.IGNORECASE
        )

    def check_filename(self, filename: str) -> None:
        if not filename or not self._filename_pattern.search(filename):
            raise UploadError("Please upload a image file")

    def check_size(self, data: bytes) -> None:
        if len(data) > self.max_size:
            raise UploadError("File too large")

    def to_png(self, data: bytes, filename: str) -> bytes:
        """
        Convert uploaded bytes to PNG.

        Args:
            data: Raw file content
            filename: Original filename, used to tell SVG from raster input

        Returns:
            bytes: PNG encoded image

        Raises:
            ImageTranscodeError: If the content cannot be decoded
        """
        if not data:
            raise ImageTranscodeError("Uploaded file is empty")

        if filename.lower().endswith(".svg"):
            return self._rasterize_svg(data)

        try:
            image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        except cv2.error as e:
            raise ImageTranscodeError("Unable to process image") from e
        if image is None:
            logger.warning(f"Could not decode uploaded image {filename}")
            raise ImageTranscodeError("Unable to process image")

        try:
            ok, encoded = cv2.imencode(".png", image)
        except cv2.error as e:
            raise ImageTranscodeError("Unable to encode image as PNG") from e
        if not ok:
            raise ImageTranscodeError("Unable to encode image as PNG")
        return encoded.tobytes()

    def _rasterize_svg(self, data: bytes) -> bytes:
        # cairosvg needs the native cairo library, so it is only loaded for SVG
        try:
            import cairosvg
            return cairosvg.svg2png(bytestring=data)
        except (ImportError, OSError) as e:
            logger.error(f"SVG rasterizer unavailable: {e}")
            raise ImageTranscodeError("SVG images are not supported on this server") from e
        except Exception as e:
            logger.warning(f"Could not rasterize SVG: {e}")
            raise ImageTranscodeError("Unable to process image") from e
