"""Domain exceptions for the compliance viewer services."""
from __future__ import annotations


class ComplianceViewerError(Exception):
    """Base class for all service-level errors."""


class UploadValidationError(ComplianceViewerError):
    """Uploaded drawing rejected before it enters the analysis pipeline."""
    status_code = 400


class UnsupportedMediaTypeError(UploadValidationError):
    status_code = 415

    def __init__(self, media_type: str, accepted):
        self.media_type = media_type
        self.accepted = sorted(accepted)
        super().__init__(
            f"Unsupported file type '{media_type or 'unknown'}'. "
            f"Please upload a valid image ({', '.join(self.accepted)})."
        )


class EmptyUploadError(UploadValidationError):
    def __init__(self, file_name: str = ""):
        super().__init__(f"Uploaded file '{file_name}' is empty.")


class UploadTooLargeError(UploadValidationError):
    status_code = 413

    def __init__(self, size: int, limit: int):
        super().__init__(f"Uploaded file is {size} bytes; the limit is {limit} bytes.")


class ProviderError(ComplianceViewerError):
    """The external LLM provider failed or returned an unusable payload."""


class ExportError(ComplianceViewerError):
    """Document generation failed."""


class ReportNotFoundError(ComplianceViewerError):
    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(f"Report {report_id} not found")


class ChatSessionNotFoundError(ComplianceViewerError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Chat session {session_id} not found")
