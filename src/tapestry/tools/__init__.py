from .registry import ToolRegistry, registry
from .events import ActionRecorder, ToolActionEvent, ToolEventBus, tool_event_bus

__all__ = [
    "ToolRegistry",
    "registry",
    "ActionRecorder",
    "ToolActionEvent",
    "ToolEventBus",
    "tool_event_bus",
]
