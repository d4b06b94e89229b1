"""Unit tests for ImageTranscoder."""
import cv2
import numpy as np
import pytest

from task_api.core.exceptions import ImageTranscodeError, UploadError
from task_api.services.images import ImageTranscoder, PNG_SIGNATURE


@pytest.fixture
def transcoder() -> ImageTranscoder:
    return ImageTranscoder(max_size=1000)


def decode(data: bytes) -> np.ndarray:
    return cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)


class TestFilenameFilter:

    @pytest.mark.parametrize("filename", ["a.jpg", "a.jpeg", "a.png", "a.svg", "b.PNG", "my.photo.JpEg"])
    def test_accepted(self, transcoder, filename) -> None:
        transcoder.check_filename(filename)

    @pytest.mark.parametrize("filename", ["a.txt", "a.gif", "a.png.zip", "photo.png\n", "jpg", "", None])
    def test_rejected(self, transcoder, filename) -> None:
        with pytest.raises(UploadError, match="Please upload a image file"):
            transcoder.check_filename(filename)

    def test_custom_extensions(self) -> None:
        transcoder = ImageTranscoder(extensions=["png"])

        transcoder.check_filename("a.png")
        with pytest.raises(UploadError):
            transcoder.check_filename("a.jpg")


class TestSizeLimit:

    def test_at_limit(self, transcoder) -> None:
        transcoder.check_size(b"x" * 1000)

    def test_over_limit(self, transcoder) -> None:
        with pytest.raises(UploadError, match="File too large"):
            transcoder.check_size(b"x" * 1001)


class TestToPng:

    def test_jpeg_becomes_png(self, transcoder, jpeg_bytes) -> None:
        result = transcoder.to_png(jpeg_bytes, "photo.jpg")

        assert result.startswith(PNG_SIGNATURE)
        assert decode(result).shape == (12, 20, 3)

    def test_alpha_is_kept(self, transcoder, rgba_png_bytes) -> None:
        result = transcoder.to_png(rgba_png_bytes, "icon.png")

        assert decode(result).shape == (12, 20, 4)

    def test_pixels_survive(self, transcoder, png_bytes) -> None:
        result = transcoder.to_png(png_bytes, "photo.png")

        assert np.array_equal(decode(result), decode(png_bytes))

    def test_garbage(self, transcoder) -> None:
        with pytest.raises(ImageTranscodeError, match="Unable to process image"):
            transcoder.to_png(b"not an image at all", "photo.png")

    def test_empty(self, transcoder) -> None:
        with pytest.raises(ImageTranscodeError):
            transcoder.to_png(b"", "photo.png")

    def test_transcode_error_is_upload_error(self) -> None:
        assert issubclass(ImageTranscodeError, UploadError)

    def test_svg_goes_to_rasterizer(self, transcoder, png_bytes, monkeypatch) -> None:
        monkeypatch.setattr(transcoder, "_rasterize_svg", lambda data: png_bytes)

        assert transcoder.to_png(b"<svg/>", "logo.SVG") == png_bytes

    def test_svg_rasterized(self, transcoder) -> None:
        try:
            import cairosvg  # noqa: F401
        except (ImportError, OSError):
            pytest.skip("cairosvg or the cairo library is not available")
        svg = (
            b'<svg xmlns="http://www.w3.org/2000/svg" width="10" height="6">'
            b'<rect width="10" height="6" fill="red"/></svg>'
        )

        result = transcoder.to_png(svg, "logo.svg")

        assert result.startswith(PNG_SIGNATURE)
        assert decode(result).shape[:2] == (6, 10)

    def test_broken_svg(self, transcoder) -> None:
        try:
            import cairosvg  # noqa: F401
        except (ImportError, OSError):
            pytest.skip("cairosvg or the cairo library is not available")

        with pytest.raises(ImageTranscodeError):
            transcoder.to_png(b"<svg", "logo.svg")
