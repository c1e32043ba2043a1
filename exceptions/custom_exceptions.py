from typing import Any, Dict, Optional

from fastapi import status


class BaseAppException(Exception):
    """Base class for errors rendered through the JSON error envelope."""

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


# 4xx: caller supplied something we cannot build a campaign from

class BusinessValidationException(BaseAppException):
    def __init__(self, message: str):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY)


class CampaignStructureException(BaseAppException):
    """Strategy/audience/creative/budget bundle is missing or inconsistent."""

    def __init__(self, message: str):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY)


class ContentFetchException(BaseAppException):
    """Product page could not be fetched or is not HTML."""

    def __init__(
        self,
        message: str = "Failed to fetch product page",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, status.HTTP_400_BAD_REQUEST)
        self.details = details or {}


class NotFoundException(BaseAppException):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


# 5xx: our side or an upstream model failed

class AIProcessingException(BaseAppException):
    def __init__(self, message: str = "AI model processing failed"):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY)


class PipelineException(BaseAppException):
    """A build stage failed. `partial` is the progress snapshot at the time."""

    def __init__(self, message: str, partial: Optional[Dict[str, Any]] = None):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.partial = partial
