"""
test_file_intake.py — Upload validation for drawing images.
"""

import base64

import pytest

from app.services.errors import (
    EmptyUploadError,
    UnsupportedMediaTypeError,
    UploadTooLargeError,
    UploadValidationError,
)
from app.services.file_intake import intake_data_url, intake_upload


class TestIntakeUpload:

    def test_png_accepted(self, png_bytes, png_base64):
        upload = intake_upload("plan.png", "image/png", png_bytes)
        assert upload.mime_type == "image/png"
        assert upload.image_base64 == png_base64
        assert upload.image_size == (40, 20)

    def test_content_type_parameters_ignored(self, png_bytes):
        assert intake_upload("plan.png", "IMAGE/PNG; charset=binary", png_bytes).mime_type == "image/png"

    @pytest.mark.parametrize("content_type", ["application/pdf", "image/gif", "", None])
    def test_unsupported_media_type(self, png_bytes, content_type):
        with pytest.raises(UnsupportedMediaTypeError) as exc:
            intake_upload("plan.pdf", content_type, png_bytes)
        assert exc.value.status_code == 415
        assert "Please upload a valid image" in str(exc.value)

    def test_empty_upload(self):
        with pytest.raises(EmptyUploadError) as exc:
            intake_upload("plan.png", "image/png", b"")
        assert exc.value.status_code == 400

    def test_too_large(self, png_bytes):
        with pytest.raises(UploadTooLargeError) as exc:
            intake_upload("plan.png", "image/png", png_bytes, max_bytes=10)
        assert exc.value.status_code == 413

    def test_undecodable_image_still_accepted(self):
        """Dimensions are best effort; the analysis provider judges the content."""
        upload = intake_upload("plan.jpg", "image/jpeg", b"\xff\xd8 not really a jpeg")
        assert upload.image_size is None
        assert upload.image_base64 == base64.b64encode(b"\xff\xd8 not really a jpeg").decode("ascii")


class TestIntakeDataUrl:

    def test_data_url_prefix_stripped(self, png_base64):
        upload = intake_data_url("plan.png", f"data:image/png;base64,{png_base64}")
        assert upload.image_base64 == png_base64
        assert upload.mime_type == "image/png"

    def test_data_url_wrong_type(self, png_base64):
        with pytest.raises(UnsupportedMediaTypeError):
            intake_data_url("plan.pdf", f"data:application/pdf;base64,{png_base64}")

    def test_not_a_data_url(self):
        with pytest.raises(UnsupportedMediaTypeError):
            intake_data_url("plan.png", "https://example.com/plan.png")

    def test_bad_base64(self):
        with pytest.raises(UploadValidationError):
            intake_data_url("plan.png", "data:image/png;base64,@@@not-base64@@@")
