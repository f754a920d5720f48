"""
Run Registry for the mindone agent relay

Tracks agent processes that are still alive so the server can report them
and drain them on shutdown. Requests never share runs: the registry only
observes them.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Optional, Dict, List
from threading import Lock

logger = logging.getLogger(__name__)


class RunRegistry:
    """In-memory registry of running agent processes, keyed by run id."""

    def __init__(self):
        self._runs: Dict[str, object] = {}
        self._lock = Lock()

    def register(self, run):
        with self._lock:
            self._runs[run.run_id] = run

    def unregister(self, run):
        with self._lock:
            self._runs.pop(run.run_id, None)

    def get_run(self, run_id: str):
        with self._lock:
            return self._runs.get(run_id)

    def active_runs(self) -> List[object]:
        with self._lock:
            return list(self._runs.values())

    def get_run_count(self) -> int:
        with self._lock:
            return len(self._runs)

    async def drain(self, grace_seconds: float, poll_interval: float = 0.1):
        """Give running agents grace_seconds to finish, then terminate the rest."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + grace_seconds
        while self.get_run_count() and loop.time() < deadline:
            await asyncio.sleep(poll_interval)

        remaining = self.active_runs()
        if not remaining:
            return

        logger.warning("Terminating %d agent run(s) still active at shutdown", len(remaining))
        for run in remaining:
            run.terminate()
        await asyncio.gather(*(run.wait_closed() for run in remaining), return_exceptions=True)


# Global run registry instance
_run_registry: Optional[RunRegistry] = None


def get_run_registry() -> RunRegistry:
    """Get the global run registry instance."""
    global _run_registry
    if _run_registry is None:
        _run_registry = RunRegistry()
    return _run_registry
