"""Exception taxonomy for model calls and pipeline stages."""

from __future__ import annotations

RAW_PREVIEW_CHARS = 500


def truncate(text: str | None, limit: int = RAW_PREVIEW_CHARS) -> str:
    """Shorten raw model output for diagnostics."""
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit] + "..."


class TailorError(Exception):
    """Base class for errors raised while producing a tailored resume."""

    code = "internal_error"


class ConfigurationError(TailorError):
    """No credential (or an unusable setting) was configured."""

    code = "configuration_error"


class UpstreamError(TailorError):
    """The model backend answered with a non-success HTTP status.

    Attributes:
        status_code: HTTP status returned by the backend.
        body: Response body, truncated.
    """

    code = "upstream_error"

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = truncate(body)
        super().__init__(f"Model backend error: {status_code} - {self.body}")

    @property
    def transient(self) -> bool:
        return self.status_code == 429 or self.status_code >= 500


class ConnectionFailedError(UpstreamError):
    """The backend could not be reached or the request timed out in transit.

    Carries no HTTP status (``status_code`` is 0) and is always transient.
    """

    def __init__(self, message: str = ""):
        self.status_code = 0
        self.body = truncate(message)
        TailorError.__init__(self, f"Model backend unreachable: {self.body or 'connection error'}")

    @property
    def transient(self) -> bool:
        return True


class EmptyResponseError(TailorError):
    """The backend returned zero completions."""

    code = "empty_response"


class ParseError(TailorError):
    """Model output was expected to be JSON but was not."""

    code = "parse_error"

    def __init__(self, message: str, raw: str | None = None):
        self.raw = truncate(raw)
        super().__init__(message)


class TurnTimeoutError(TailorError):
    """A conversation turn exceeded its deadline."""

    code = "timeout"

    def __init__(self, turn_number: int, timeout: float):
        self.turn_number = turn_number
        self.timeout = timeout
        super().__init__(f"Turn {turn_number} timed out after {timeout:g}s")


class MalformedResponseError(TailorError):
    """Model output parsed but did not have the expected shape.

    Attributes:
        stage: Pipeline stage (or "session" for transport-level shapes).
        violations: Human-readable list of what was wrong.
        raw: Offending output, truncated.
    """

    code = "malformed_response"

    def __init__(
        self,
        stage: str,
        violations: list[str] | None = None,
        raw: str | None = None,
    ):
        self.stage = stage
        self.violations = list(violations or [])
        self.raw = truncate(raw)
        detail = "; ".join(self.violations[:5]) or "unexpected response shape"
        super().__init__(f"Malformed {stage} response: {detail}")
