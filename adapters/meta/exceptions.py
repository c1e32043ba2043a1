from typing import Any, Optional

# Graph API error codes that mean "slow down", not "bad request"
RATE_LIMIT_CODES = frozenset({4, 17, 32, 613, 80004})


class MetaAPIError(Exception):
    """Graph API error response, with Meta's own error code when present."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_data: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_data = error_data or {}
        error = self.error_data.get("error") or {}
        self.code: Optional[int] = error.get("code")
        self.error_subcode: Optional[int] = error.get("error_subcode")
        super().__init__(message)

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429 or self.code in RATE_LIMIT_CODES
