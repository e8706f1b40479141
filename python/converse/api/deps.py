"""FastAPI dependencies for route handlers.

The store, mutation engine and reconciliation loop are created once in the
application lifespan and stored on app.state.
"""

from fastapi import Request

from converse.services.mutations import MutationEngine
from converse.services.reconcile import ReconciliationLoop

__all__ = ["get_mutation_engine", "get_reconciler"]


def get_reconciler(request: Request) -> ReconciliationLoop:
    """Get the shared reconciliation loop (owner of the snapshot)."""
    return request.app.state.reconciler


def get_mutation_engine(request: Request) -> MutationEngine:
    """Get the shared mutation engine."""
    return request.app.state.engine
