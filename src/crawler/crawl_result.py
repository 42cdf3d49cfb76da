"""
Crawl outcome types: the closed set of status codes a processed URL can end with.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class StatusCode(Enum):
    """Outcome of processing one URL, in the order they are checked."""
    ROBOTS_TXT_EXCLUDED = "robotsTxtExcluded"
    SHOULD_NOT_VISIT = "shouldNotVisit"
    FETCH_ERROR = "fetchError"
    HTTP_REDIRECT = "httpRedirect"
    HTTP_REDIRECT_NOT_FOLLOWED = "httpRedirectNotFollowed"
    REDIRECT = "redirect"
    REDIRECT_NOT_FOLLOWED = "redirectNotFollowed"
    FAILED_TO_PARSE = "failedToParse"
    VISIT_ERROR = "visitError"
    SUCCESSFUL = "successful"


SUCCESS_CODES = frozenset({
    StatusCode.SUCCESSFUL,
    StatusCode.HTTP_REDIRECT,
    StatusCode.REDIRECT,
})

ERROR_CODES = frozenset({
    StatusCode.FETCH_ERROR,
    StatusCode.FAILED_TO_PARSE,
    StatusCode.VISIT_ERROR,
})


@dataclass(frozen=True)
class CrawlResult:
    """Result attached to a CrawlUrl once it has been processed."""
    status: StatusCode
    detail: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status in SUCCESS_CODES

    @property
    def is_error(self) -> bool:
        return self.status in ERROR_CODES

    @classmethod
    def from_exception(cls, status: StatusCode, exc: BaseException) -> 'CrawlResult':
        """Build a result whose detail is the qualified exception type and message."""
        exc_type = type(exc)
        type_name = exc_type.__qualname__
        if exc_type.__module__ != 'builtins':
            type_name = f"{exc_type.__module__}.{type_name}"
        return cls(status, f"{type_name} {exc}")

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'status': self.status.value,
            'detail': self.detail
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CrawlResult':
        """Create CrawlResult from dictionary."""
        return cls(
            status=StatusCode(data['status']),
            detail=data.get('detail')
        )
