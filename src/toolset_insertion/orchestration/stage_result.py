"""Stage Result — typed transition result for pipeline stages.

Manifesto:
    A stage never decides the run's fate by raising a particular exception
subtype. It returns a ``StageResult`` whose ``kind`` is the discriminant the
pipeline runner reads: carry on, stop as CANCELLED, or stop as FAILED.

ARCHITECTURE
────────────
::

    StageResult
      ├── .ok(detail)                 → advance to the stage's state
      ├── .skip(reason)               → gate closed, stay in the current state
      ├── .benign(error)              → stop, status CANCELLED
      ├── .fatal(error)               → stop, status FAILED
      └── .from_exception(exc)        → classify an exception raised by a stage

    StageKind ── OK, SKIPPED, BENIGN, FATAL

BEST PRACTICES
──────────────
- Return ``StageResult.fatal(SomeInsertionError(...))`` for classified
  failures; let unexpected exceptions propagate to the runner, which wraps
  them with ``from_exception``.
- ``benign`` is for "nothing to do", never for "something broke".

Tags:
    orchestration, stage-result, discriminant, benign, fatal

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from toolset_insertion.core.errors import InsertionError


class StageKind(str, Enum):
    """Discriminant of a stage result."""

    OK = "OK"
    SKIPPED = "SKIPPED"
    BENIGN = "BENIGN"
    FATAL = "FATAL"


@dataclass
class StageResult:
    """
    Result of running one pipeline stage.

    Attributes:
        kind: What the runner should do next
        error: The condition that stopped the run (BENIGN and FATAL only)
        detail: Stage output for logging (counts, ids, urls)
        reason: Why a stage was skipped
    """

    kind: StageKind
    error: BaseException | None = None
    detail: dict[str, Any] = field(default_factory=dict)
    reason: str | None = None

    def __post_init__(self):
        if self.kind in (StageKind.BENIGN, StageKind.FATAL) and self.error is None:
            raise ValueError(f"{self.kind.value} stage result requires an error")

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def ok(cls, **detail: Any) -> StageResult:
        return cls(kind=StageKind.OK, detail=detail)

    @classmethod
    def skip(cls, reason: str) -> StageResult:
        """Gate closed: the stage did nothing and the state does not advance."""
        return cls(kind=StageKind.SKIPPED, reason=reason)

    @classmethod
    def benign(cls, error: BaseException) -> StageResult:
        return cls(kind=StageKind.BENIGN, error=error)

    @classmethod
    def fatal(cls, error: BaseException) -> StageResult:
        return cls(kind=StageKind.FATAL, error=error)

    @classmethod
    def from_exception(cls, exc: BaseException) -> StageResult:
        """Benign insertion errors stop the run as CANCELLED; anything else is fatal."""
        if isinstance(exc, InsertionError) and exc.benign:
            return cls.benign(exc)
        return cls.fatal(exc)

    # =========================================================================
    # Inspection
    # =========================================================================

    @property
    def advances(self) -> bool:
        return self.kind == StageKind.OK

    @property
    def stops(self) -> bool:
        return self.kind in (StageKind.BENIGN, StageKind.FATAL)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging."""
        result: dict[str, Any] = {"kind": self.kind.value}
        if self.detail:
            result["detail"] = self.detail
        if self.reason:
            result["reason"] = self.reason
        if self.error is not None:
            if isinstance(self.error, InsertionError):
                result["error"] = self.error.to_dict()
            else:
                result["error"] = {"error_type": type(self.error).__name__, "message": str(self.error)}
        return result

    def __repr__(self) -> str:
        if self.error is not None:
            return f"StageResult({self.kind.value}, error={type(self.error).__name__})"
        return f"StageResult({self.kind.value})"


__all__ = ["StageKind", "StageResult"]
