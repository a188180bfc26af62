"""Application core.

- Model / AppState: the application state
- update: the update function
- Effect and friends: side work requested by update

The control loop lives in :mod:`opencoders_cli.app.program` and the
background operations in :mod:`opencoders_cli.app.operations`.
"""

from __future__ import annotations

from opencoders_cli.app.effects import NONE, Batch, Effect, NestedBatchError, batch
from opencoders_cli.app.state import STATE_LABELS, AppState, Model
from opencoders_cli.app.update import update

__all__ = [
    "NONE",
    "STATE_LABELS",
    "AppState",
    "Batch",
    "Effect",
    "Model",
    "NestedBatchError",
    "batch",
    "update",
]
