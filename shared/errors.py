"""
Error taxonomy shared by every triage component.

Each error carries a `kind` the presentation layer can switch on
("auth", "not-found", "rate-limit", "timeout", "validation", "unparsable",
"cancelled", "unknown"), whether a retry could help, and an optional
remediation hint.
"""

from typing import Optional


class TriageError(Exception):
    """Base class for all errors surfaced to the operator."""

    kind = "unknown"
    retryable = False

    def __init__(self, message: str, *, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint


class InputValidationError(TriageError):
    """Malformed operator input: conversation id, repository scope, config."""

    kind = "validation"


class MalformedInputError(InputValidationError):
    """A payload from an external service is structurally unusable."""


class SearchQueryError(InputValidationError):
    """The tracker rejected the search expression (HTTP 422)."""


class ConfigurationError(InputValidationError):
    """Required configuration is missing or invalid."""

    def __init__(self, problems: list[str]):
        super().__init__(
            "Configuration errors: " + "; ".join(problems),
            hint="Edit config.yaml or set the matching environment variables.",
        )
        self.problems = problems


class RemoteAuthError(TriageError):
    """A credential was rejected by a remote service."""

    kind = "auth"


class NotFoundError(TriageError):
    kind = "not-found"


class RateLimitedError(TriageError):
    """The remote service throttled us. Safe to retry later."""

    kind = "rate-limit"
    retryable = True

    def __init__(
        self,
        message: str,
        *,
        retry_after: Optional[int] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message, hint=hint)
        self.retry_after = retry_after


class RequestTimeoutError(TriageError):
    """A call timed out or could not reach the remote service."""

    kind = "timeout"
    retryable = True


class TrackerError(TriageError):
    """Any other non-2xx response from the issue tracker."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class LLMError(TriageError):
    """An LLM backend returned an error that does not fit another kind."""


class AnalysisUnparsableError(TriageError):
    """The LLM replied, but not with the structured data we asked for."""

    kind = "unparsable"

    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(
            message,
            hint="Retry the analysis; the model occasionally ignores the JSON format.",
        )
        self.raw_response = raw_response


class NoAnalysisEngineError(TriageError):
    def __init__(self, message: str = "No analysis engine available"):
        super().__init__(
            message,
            hint="Configure a remote LLM key or enable local inference.",
        )


class AnalysisCancelledError(TriageError):
    """The analysis run was abandoned before it produced a result."""

    kind = "cancelled"


def describe_error(exc: BaseException) -> tuple[str, str, Optional[str]]:
    """
    Map any exception to (kind, message, hint) for display.

    Unknown exceptions become kind "unknown" with their string form.
    """
    if isinstance(exc, TriageError):
        return exc.kind, exc.message, exc.hint
    return "unknown", str(exc) or exc.__class__.__name__, None
