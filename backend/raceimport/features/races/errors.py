"""
Race results import errors.

Hierarchy:
- ResultsImportError
  - LocatorError: URL/file cannot be turned into a source identity
  - DiscoveryError: no RaceResult list could be discovered
  - UpstreamError: results API failed (status + truncated body)
  - EmptyResultError: crawl/parse finished with zero usable finishers
"""

BODY_PREVIEW_CHARS = 200


class ResultsImportError(Exception):
    """Base results import error."""
    pass


class LocatorError(ResultsImportError):
    """Locator cannot be parsed into a source identity."""
    pass


class DiscoveryError(ResultsImportError):
    """No candidate results list returned data."""
    pass


class UpstreamError(ResultsImportError):
    """Results API returned an error (not an end-of-data signal)."""

    def __init__(self, message: str, status_code: int | None = None, url: str | None = None, body: str = ""):
        self.status_code = status_code
        self.url = url
        self.body = (body or "")[:BODY_PREVIEW_CHARS]
        detail = f"{message}: {status_code}" if status_code is not None else message
        if self.body:
            detail = f"{detail} - {self.body}"
        super().__init__(detail)


class EmptyResultError(ResultsImportError):
    """Source produced no finishers."""
    pass
