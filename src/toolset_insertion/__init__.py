"""
Toolset Insertion - move a toolset build from its build queue into a product branch.

One run resolves an upstream build, rewrites the product's package manifest
to reference it, verifies the result, and opens a pull request, rolling the
working branch back if anything fails before the pull request exists and
mailing a report either way.

Packages:
- toolset_insertion.core: errors, logging, settings, cancellation, collaborator protocols
- toolset_insertion.domain: build identifiers and the package manifest
- toolset_insertion.orchestration: the insertion pipeline state machine
- toolset_insertion.framework.notifications: outcome rendering and mail delivery
- toolset_insertion.adapters: file-backed collaborators
"""

__version__ = "0.1.0"

from toolset_insertion.core.errors import InsertionError
from toolset_insertion.core.settings import InsertionSettings
from toolset_insertion.orchestration import (
    InsertionContext,
    InsertionOutcome,
    InsertionPipeline,
    InsertionStatus,
    run_insertion,
)
from toolset_insertion.framework.notifications import OutcomeReporter

__all__ = [
    "__version__",
    "InsertionError",
    "InsertionSettings",
    "InsertionContext",
    "InsertionOutcome",
    "InsertionPipeline",
    "InsertionStatus",
    "OutcomeReporter",
    "run_insertion",
]
