"""Workflow orchestration.

Imports are lazy so that `chunkscribe.pipeline.routing` and friends can be
used without pulling in every adapter.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from chunkscribe.pipeline.factory import create_orchestrator
    from chunkscribe.pipeline.orchestrator import Orchestrator

__all__ = ["Orchestrator", "create_orchestrator"]


def __getattr__(name: str) -> Any:
    if name == "Orchestrator":
        from chunkscribe.pipeline.orchestrator import Orchestrator

        return Orchestrator
    if name == "create_orchestrator":
        from chunkscribe.pipeline.factory import create_orchestrator

        return create_orchestrator
    raise AttributeError(name)
