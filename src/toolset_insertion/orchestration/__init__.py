"""
Insertion orchestration.

ARCHITECTURE
────────────
::

    InsertionPipeline.run(ctx)
      │
      ├── for each Stage: cancellation check → gate → handler → StageResult
      │     OK       advance ctx.state
      │     SKIPPED  gate closed, stay
      │     BENIGN   stop → CANCELLED
      │     FATAL    stop → FAILED
      │
      └── unwind: flush logs → rollback (if armed) → notify → clear run state

    InsertionContext   run-scoped state (no globals)
    StageResult        typed stage outcome
    testing            in-memory collaborator fakes

BEST PRACTICES
──────────────
- Build one ``InsertionContext`` per run; never reuse one across runs.
- Use ``orchestration.testing`` fakes to exercise stages without a build
  server, git host or mail server.
"""

from toolset_insertion.orchestration.states import InsertionStatus, PipelineState
from toolset_insertion.orchestration.stage_result import StageKind, StageResult
from toolset_insertion.orchestration.context import (
    Checkpoint,
    InsertionContext,
    InsertionOutcome,
)
from toolset_insertion.orchestration.pipeline import (
    DEFAULT_STAGES,
    InsertionPipeline,
    Stage,
    run_insertion,
)

__all__ = [
    # States
    "PipelineState",
    "InsertionStatus",
    # Results
    "StageKind",
    "StageResult",
    # Context
    "Checkpoint",
    "InsertionContext",
    "InsertionOutcome",
    # Runner
    "Stage",
    "DEFAULT_STAGES",
    "InsertionPipeline",
    "run_insertion",
]
