# errors.py
from typing import Optional

from schema import FeatureLimit


class IngestionError(Exception):
    """Base class for upload pipeline failures."""


class ContentExtractionError(IngestionError):
    """Raised when an uploaded file cannot be turned into text."""


class UnsupportedFileType(ContentExtractionError):
    pass


class FileReadError(ContentExtractionError):
    pass


class OcrFailure(ContentExtractionError):
    pass


class AnalysisRequestFailed(IngestionError):
    """Raised when the completion call itself fails."""


class StorageError(IngestionError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FeatureLimitExceeded(IngestionError):
    def __init__(self, feature_name: str, limit: FeatureLimit):
        self.feature_name = feature_name
        self.limit = limit
        super().__init__(
            f"Monthly {feature_name} limit reached: you have used "
            f"{limit.current_usage} of {limit.limit_value}. "
            "Upgrade your plan to continue."
        )


class QueueRecordError(IngestionError):
    pass
