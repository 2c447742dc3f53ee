import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional
from uuid import uuid4

from tapestry.tools.registry import ToolRegistry
from .exceptions import ExecutionCancelled


class Status(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (Status.COMPLETED, Status.ERROR, Status.CANCELLED)


@dataclass
class IteratorState:
    items: List[Any]
    index: int = 0

    @property
    def exhausted(self) -> bool:
        return self.index >= len(self.items)

    def advance(self) -> Any:
        item = self.items[self.index]
        self.index += 1
        return item


def _ignore_log(msg: str) -> None:
    pass


def _ignore_line(line: int) -> None:
    pass


@dataclass
class RuntimeContext:
    """
    Mutable state of a single run. Created fresh for every run and only
    mutated by ``ScriptEngine.step``.
    """

    registry: ToolRegistry
    log: Callable[[str], None] = _ignore_log
    highlight_line: Callable[[int], None] = _ignore_line
    # Awaited with the delay in seconds (float). Defaults to a delay that
    # cancel() interrupts.
    sleep: Optional[Callable[[float], Awaitable[None]]] = None

    variables: Dict[str, Any] = field(default_factory=dict)
    ip: int = 0
    iterators: Dict[str, IteratorState] = field(default_factory=dict)
    status: Status = Status.IDLE
    steps: int = 0
    run_id: str = field(default_factory=lambda: str(uuid4()))
    started_at: Optional[float] = None

    _cancelled: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    def __post_init__(self):
        if self.sleep is None:
            self.sleep = self._cancellable_sleep

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """
        Stops the run. A pending sleep wakes immediately and the step that
        owns it raises ``ExecutionCancelled``.
        """
        self._cancelled.set()
        if not self.status.is_terminal:
            self.status = Status.CANCELLED

    async def _cancellable_sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise ExecutionCancelled(f"Run {self.run_id} was cancelled during sleep")
