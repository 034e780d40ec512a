"""
Error taxonomy for activity map processing.

Two families are kept apart so callers can tell bad input from bad usage:

  - RecordError: one malformed edge record. Accumulated, never fatal.
  - UsageError: the API was driven incorrectly (e.g. add after finalize).

Every error accepts context lines ("while processing page 3") that are
prepended to its message without changing its type.
"""

from typing import Optional


class ActivityGraphError(Exception):
    """Base class for all activitygraph errors."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message
        self._contexts: list[str] = []

    def add_context(self, context: str) -> "ActivityGraphError":
        """Attach an outer context line and return self for re-raising."""
        self._contexts.append(context)
        return self

    @property
    def contexts(self) -> tuple[str, ...]:
        """Context lines, outermost first."""
        return tuple(reversed(self._contexts))

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        return ": ".join([*self.contexts, self.message])


class RecordError(ActivityGraphError):
    """A single edge record could not be decoded."""

    def __init__(self, message: str = "", record_index: Optional[int] = None):
        super().__init__(message)
        self.record_index = record_index


class InvalidQueryTime(RecordError, ValueError):
    """A time value matches none of the accepted grammars or overflows."""

    def __init__(self, value: object, reason: str = ""):
        detail = f"invalid query time {value!r}"
        if reason:
            detail = f"{detail} ({reason})"
        super().__init__(detail)
        self.value = value


class MissingPeerIdentity(RecordError):
    """An edge record lacks its source or destination peer."""

    def __init__(self, field_name: str):
        super().__init__(f"edge record is missing peer field {field_name!r}")
        self.field_name = field_name


class InvalidEdgeField(RecordError):
    """An edge counter or peer field holds a value of the wrong shape."""

    def __init__(self, field_name: str, value: object, reason: str):
        super().__init__(f"edge field {field_name!r}={value!r}: {reason}")
        self.field_name = field_name
        self.value = value


class UsageError(ActivityGraphError, RuntimeError):
    """The library was called in a way its contract forbids."""


class BuilderAlreadyFinalized(UsageError):
    """A GraphBuilder was used after finalize()."""

    def __init__(self, operation: str = "add"):
        super().__init__(f"cannot {operation}: builder was already finalized")
        self.operation = operation


class PageFormatError(ActivityGraphError):
    """A response body does not have the activity map page shape."""


class TransportError(ActivityGraphError):
    """Wraps a failure raised by the transport layer while fetching a page."""

    @classmethod
    def wrap(cls, exc: BaseException, context: Optional[str] = None) -> "TransportError":
        err = cls(f"{type(exc).__name__}: {exc}")
        err.__cause__ = exc
        if context:
            err.add_context(context)
        return err


class CredentialError(ActivityGraphError, ValueError):
    """An API credential could not be parsed or was used after release."""
