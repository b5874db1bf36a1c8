"""
Exception hierarchy for the extraction pipeline.

Three families, handled at three different levels:
  - ConfigurationError   → rejected synchronously by the job-control surface
  - PageProcessingError  → recorded in failedPages, the job moves on
  - JobFatalError        → the job transitions to FAILED
"""


class ExtractionError(Exception):
    """Base class for every error raised by the extraction pipeline."""


# ─── Configuration errors (state unchanged) ───────────────────────────────────

class ConfigurationError(ExtractionError):
    pass


class AlreadyRunningError(ConfigurationError):
    def __init__(self, message: str = "Extraction already in progress"):
        super().__init__(message)


class NoStoppedJobError(ConfigurationError):
    def __init__(self, message: str = "No stopped extraction to continue"):
        super().__init__(message)


class AllPagesProcessedError(ConfigurationError):
    def __init__(self, message: str = "All pages have been processed"):
        super().__init__(message)


class DocumentNotFoundError(ConfigurationError):
    pass


class InvalidPageRangeError(ConfigurationError):
    pass


# ─── Page-level errors (non-fatal to the job) ─────────────────────────────────

class PageProcessingError(ExtractionError):
    pass


class TextAcquisitionError(PageProcessingError):
    pass


class UnparseableResponseError(PageProcessingError):
    pass


class ModelInvocationError(PageProcessingError):
    pass


class ModelTimeoutError(ModelInvocationError):
    pass


class ModelTransportError(ModelInvocationError):
    pass


class ModelHTTPError(ModelInvocationError):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"Model endpoint returned HTTP {status_code}: {message}")
        self.status_code = status_code


class EmptyModelResponseError(ModelInvocationError):
    def __init__(self, message: str = "Model returned an empty response"):
        super().__init__(message)


# ─── Job-fatal errors ─────────────────────────────────────────────────────────

class JobFatalError(ExtractionError):
    pass


class DocumentUnavailableError(JobFatalError):
    pass


class ProgressStoreError(JobFatalError):
    pass
