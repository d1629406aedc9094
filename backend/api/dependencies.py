"""
Dependency injection for the API service.
Provides the fixture service, store and reconciler to route handlers.
"""
from __future__ import annotations

from typing import Optional

from shared.cache.base import FixtureStore
from ingest.service import FixtureService
from scheduler.reconciler import LiveReconciler

# Module-level singletons, initialized at startup
_store: FixtureStore | None = None
_service: FixtureService | None = None
_reconciler: LiveReconciler | None = None


def init_dependencies(
    store: FixtureStore,
    service: FixtureService,
    reconciler: Optional[LiveReconciler] = None,
) -> None:
    """Initialize module-level singletons. Called once at startup (or by tests)."""
    global _store, _service, _reconciler
    _store = store
    _service = service
    _reconciler = reconciler


def reset_dependencies() -> None:
    global _store, _service, _reconciler
    _store = _service = _reconciler = None


def get_store() -> FixtureStore:
    if _store is None:
        raise RuntimeError("FixtureStore not initialized; call init_dependencies first")
    return _store


def get_fixture_service() -> FixtureService:
    if _service is None:
        raise RuntimeError("FixtureService not initialized; call init_dependencies first")
    return _service


def get_reconciler() -> Optional[LiveReconciler]:
    """May be None when the reconciler runs in a separate worker."""
    return _reconciler
