"""Error matchers for converting foreign exceptions to CollieErrors."""

import json

import httpx

from .errors import ErrorMatcher, MatchResult


class HTTPTimeoutMatcher(ErrorMatcher):
    """Matches httpx timeouts raised while opening a stream."""

    def matches(self, error: Exception) -> bool:
        """Check if error is an httpx timeout."""
        return isinstance(error, httpx.TimeoutException)

    def extract(self, error: Exception) -> MatchResult:
        """Extract timeout info.

        Args:
            error: httpx timeout exception

        Returns:
            MatchResult with CONNECT_TIMEOUT code
        """
        url = "unknown"
        try:
            url = str(error.request.url)  # type: ignore[attr-defined]
        except RuntimeError:
            # .request raises when the exception was built without one
            pass

        return MatchResult(
            error_code="CONNECT_TIMEOUT",
            context={"url": url, "timeout_seconds": "unknown"},
        )


class HTTPStatusMatcher(ErrorMatcher):
    """Matches httpx.HTTPStatusError from raise_for_status()."""

    def matches(self, error: Exception) -> bool:
        """Check if error carries an HTTP response status."""
        return isinstance(error, httpx.HTTPStatusError)

    def extract(self, error: Exception) -> MatchResult:
        """Extract status code and reason phrase.

        Args:
            error: httpx status error

        Returns:
            MatchResult with HTTP_STATUS code
        """
        response = error.response  # type: ignore[attr-defined]
        return MatchResult(
            error_code="HTTP_STATUS",
            context={
                "status_code": response.status_code,
                "reason": response.reason_phrase,
            },
        )


class HTTPErrorMatcher(ErrorMatcher):
    """Matches any other httpx transport failure."""

    def matches(self, error: Exception) -> bool:
        """Check if error is an httpx error."""
        return isinstance(error, httpx.HTTPError)

    def extract(self, error: Exception) -> MatchResult:
        """Extract transport failure info."""
        return MatchResult(
            error_code="CONNECTION_FAILED",
            context={"reason": str(error) or type(error).__name__},
        )


class TimeoutErrorMatcher(ErrorMatcher):
    """Matches asyncio / builtin timeouts."""

    def matches(self, error: Exception) -> bool:
        """Check if error is a timeout error."""
        return isinstance(error, TimeoutError)

    def extract(self, error: Exception) -> MatchResult:
        """Extract timeout error info."""
        return MatchResult(
            error_code="REQUEST_TIMEOUT",
            context={"method": "unknown", "request_id": "unknown", "timeout_seconds": "unknown"},
        )


class JSONDecodeErrorMatcher(ErrorMatcher):
    """Matches malformed JSON payloads."""

    def matches(self, error: Exception) -> bool:
        """Check if error is a JSON decode error."""
        return isinstance(error, json.JSONDecodeError)

    def extract(self, error: Exception) -> MatchResult:
        """Extract decode position and the offending document."""
        doc = error.doc if isinstance(error, json.JSONDecodeError) else ""
        return MatchResult(
            error_code="PROTOCOL_PARSE",
            context={"reason": str(error), "raw": doc[:100]},
        )


class OSErrorMatcher(ErrorMatcher):
    """Matches process spawn failures (missing binary, permissions)."""

    def matches(self, error: Exception) -> bool:
        """Check if error is an OSError."""
        return isinstance(error, OSError)

    def extract(self, error: Exception) -> MatchResult:
        """Extract spawn failure info."""
        command = getattr(error, "filename", None) or "unknown"
        return MatchResult(
            error_code="PROCESS_SPAWN_FAILED",
            context={"command": command, "reason": error.strerror or str(error)},  # type: ignore[attr-defined]
        )


class GenericErrorMatcher(ErrorMatcher):
    """Fallback matcher for any exception."""

    def matches(self, error: Exception) -> bool:
        """Always matches."""
        return True

    def extract(self, error: Exception) -> MatchResult:
        """Extract generic error info."""
        return MatchResult(
            error_code="INTERNAL_ERROR",
            context={
                "reason": str(error) or type(error).__name__,
                "error_type": type(error).__name__,
            },
            retryable=False,
        )


class ErrorMatcherChain:
    """Ordered chain of matchers. First match wins."""

    def __init__(self) -> None:
        """Initialize matcher chain with built-in matchers."""
        self.matchers: list[ErrorMatcher] = []
        self._load_builtin_matchers()

    def match(self, error: Exception) -> MatchResult:
        """Find first matching matcher and extract result.

        Args:
            error: Exception to match

        Returns:
            MatchResult from first matching matcher
        """
        for matcher in self.matchers:
            if matcher.matches(error):
                return matcher.extract(error)

        # Should never reach here due to GenericErrorMatcher
        return MatchResult(
            error_code="INTERNAL_ERROR",
            context={"reason": str(error), "error_type": type(error).__name__},
            retryable=False,
        )

    def _load_builtin_matchers(self) -> None:
        """Load built-in matchers in priority order."""
        # Order matters: TimeoutError and JSONDecodeError subclass
        # OSError and ValueError respectively
        self.matchers = [
            HTTPTimeoutMatcher(),
            HTTPStatusMatcher(),
            HTTPErrorMatcher(),
            TimeoutErrorMatcher(),
            JSONDecodeErrorMatcher(),
            OSErrorMatcher(),
            GenericErrorMatcher(),  # Fallback - must be last
        ]
