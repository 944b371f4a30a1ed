"""
Error taxonomy for the query pipeline.

Every failure the pipeline raises on purpose derives from ``CopilotError``;
the HTTP layer maps each type to a status code.
"""
from __future__ import annotations


class CopilotError(Exception):
    """Base class for expected pipeline failures."""

    status_code = 500


class InvalidRequest(CopilotError):
    """The request carried no usable query text."""

    status_code = 400


class MalformedIntent(CopilotError):
    """Classifier output could not be parsed into an Intent."""

    def __init__(self, message: str, raw_output: str = ""):
        super().__init__(message)
        self.raw_output = raw_output


class SchemaUnavailable(CopilotError):
    """The column catalog could not be fetched (or came back empty)."""


class RetrievalFailure(CopilotError):
    """A data-store query or the semantic search failed."""


class UnsafeQuery(CopilotError):
    """Generated SQL was rejected by the safety gate."""

    def __init__(self, violations: list[str]):
        super().__init__("Generated SQL failed safety checks: " + "; ".join(violations))
        self.violations = violations


class ConnectionTeardownFailure(CopilotError):
    """Releasing the data-store connection failed. Logged, never raised over a result."""
