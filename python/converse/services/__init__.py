"""Business logic services.

This module contains the tree model, mutation engine, reconciliation loop,
view projection and board session. Route handlers call into these.
"""

from converse.services.board import MessageBoard
from converse.services.mutations import MutationEngine
from converse.services.projection import ProjectedNode, project, toggle_visibility
from converse.services.reconcile import ReconciliationLoop, Snapshot
from converse.services.tree import MessageTree

__all__ = [
    "MessageBoard",
    "MessageTree",
    "MutationEngine",
    "ProjectedNode",
    "ReconciliationLoop",
    "Snapshot",
    "project",
    "toggle_visibility",
]
