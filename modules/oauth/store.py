"""
In-memory flow-state store.

Single-process only: a deployment with more than one worker must provide an
IFlowStateStore backed by a shared cache with TTL support instead.
"""

import logging
from datetime import datetime, timezone
from typing import Iterator, Optional

from .models import OAuthFlowState

logger = logging.getLogger(__name__)


class InMemoryFlowStateStore:
    """
    Dict-backed IFlowStateStore.

    Every method is synchronous, so under asyncio each call is atomic with
    respect to other coroutines and no lock is needed.
    """

    def __init__(self) -> None:
        self._states: dict[str, OAuthFlowState] = {}

    def get(self, state: str) -> Optional[OAuthFlowState]:
        return self._states.get(state)

    def set(self, flow_state: OAuthFlowState) -> None:
        self._states[flow_state.state] = flow_state

    def delete(self, state: str) -> None:
        self._states.pop(state, None)

    def sweep(self, ttl_seconds: int) -> int:
        now = datetime.now(timezone.utc)
        expired = [
            key for key, flow_state in self._states.items()
            if flow_state.is_expired(ttl_seconds, now)
        ]
        for key in expired:
            del self._states[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired OAuth states")
        return len(expired)

    def reset(self) -> None:
        self._states.clear()

    def __iter__(self) -> Iterator[OAuthFlowState]:
        return iter(list(self._states.values()))

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, state: object) -> bool:
        return state in self._states


# Process-wide store instance
_store_instance: Optional[InMemoryFlowStateStore] = None


def get_flow_state_store() -> InMemoryFlowStateStore:
    """Get the process-wide flow-state store."""
    global _store_instance
    if _store_instance is None:
        _store_instance = InMemoryFlowStateStore()
    return _store_instance


def reset_flow_state_store() -> None:
    """Clear the process-wide store (for testing)."""
    if _store_instance is not None:
        _store_instance.reset()
