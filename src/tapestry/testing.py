from typing import Any, Dict, List, Optional, Tuple

from tapestry.runtime.bus import MessageBus
from tapestry.runtime.events import Event
from tapestry.spec.protocols import ActionDescriptor


class SpySubscriber:
    def __init__(self, bus: MessageBus):
        self.events = []
        bus.subscribe(Event, self.collect)

    def collect(self, event: Event):
        self.events.append(event)

    def events_of_type(self, event_type):
        return [e for e in self.events if isinstance(e, event_type)]


class SpyTool:
    """
    A tool that records every invocation and answers from a table of
    canned results keyed by action name.
    """

    def __init__(self, tool_id: str = "spy", results: Optional[Dict[str, Any]] = None):
        self.id = tool_id
        self.results = results or {}
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def list_actions(self) -> List[ActionDescriptor]:
        return [ActionDescriptor(name) for name in self.results]

    async def invoke(self, action: str, args: Dict[str, Any]) -> Any:
        self.calls.append((action, args))
        return self.results.get(action)

    def calls_to(self, action: str) -> List[Dict[str, Any]]:
        return [args for name, args in self.calls if name == action]


class FailingTool:
    def __init__(self, tool_id: str = "broken", error: Optional[Exception] = None):
        self.id = tool_id
        self.error = error or RuntimeError("tool exploded")

    def list_actions(self) -> List[ActionDescriptor]:
        return []

    async def invoke(self, action: str, args: Dict[str, Any]) -> Any:
        raise self.error


class RecordingSleep:
    """Stands in for the context delay; records requested durations instead of waiting."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
