from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from uuid import uuid4
import time


@dataclass(frozen=True)
class Event:
    """Base class for all runtime events."""

    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: float = field(default_factory=time.time)

    # Injected by the engine from the running context
    run_id: Optional[str] = None


@dataclass(frozen=True)
class ScriptStarted(Event):
    """Fired on the first step of a context."""

    instruction_count: int = 0


@dataclass(frozen=True)
class ScriptFinished(Event):
    """Fired when a context reaches a terminal status."""

    status: str = "unknown"  # "completed", "error", "cancelled"
    duration: float = 0.0
    steps: int = 0
    error: Optional[str] = None
    line: Optional[int] = None
    # Machine readable cause for host-imposed stops, e.g. "step_limit"
    reason: Optional[str] = None


@dataclass(frozen=True)
class InstructionExecuted(Event):
    """Fired after an instruction completes without error."""

    index: int = 0
    line: int = 0
    op: str = ""


@dataclass(frozen=True)
class ToolInvoked(Event):
    """Fired after a registered tool returns from ``invoke``."""

    tool_id: str = ""
    action: str = ""
    args: Dict[str, Any] = field(default_factory=dict)
    duration: float = 0.0
