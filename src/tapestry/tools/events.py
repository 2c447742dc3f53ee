import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolActionEvent:
    """A tool action performed outside of a script, e.g. from the UI."""

    tool_id: str
    action: str
    args: Dict[str, Any] = field(default_factory=dict)


Listener = Callable[[ToolActionEvent], None]


class ToolEventBus:
    """
    Fan-out of tool action events. Delivery is deferred to the next turn of
    the running event loop so the emitting call never waits on listeners.
    """

    def __init__(self):
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: ToolActionEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to defer to (synchronous host); deliver in place.
            self._deliver(event)
            return
        loop.call_soon(self._deliver, event)

    def _deliver(self, event: ToolActionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Tool event listener failed for %s.%s", event.tool_id, event.action)


def format_literal(value: Any) -> str:
    """Renders a value as script source that evaluates back to it."""
    if value is None:
        return "None"
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        escaped = escaped.replace("\n", "\\n").replace("\t", "\\t")
        return f'"{escaped}"'
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(format_literal(v) for v in value) + "]"
    return str(value)


def format_call(event: ToolActionEvent) -> str:
    args = ", ".join(f"{key}={format_literal(val)}" for key, val in event.args.items())
    return f"{event.tool_id}.{event.action}({args})"


class ActionRecorder:
    """
    Turns tool action events into script lines while recording is active.
    """

    def __init__(self, event_bus: "ToolEventBus", source: str = ""):
        self._event_bus = event_bus
        self._unsubscribe = None
        self.lines: List[str] = []
        self._prefix = source

    @property
    def recording(self) -> bool:
        return self._unsubscribe is not None

    @property
    def source(self) -> str:
        if not self.lines:
            return self._prefix
        prefix = self._prefix
        if prefix and not prefix.endswith("\n"):
            prefix += "\n"
        return prefix + "".join(line + "\n" for line in self.lines)

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._event_bus.subscribe(self.on_action)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_action(self, event: ToolActionEvent) -> None:
        self.lines.append(format_call(event))

    def __enter__(self) -> "ActionRecorder":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()


tool_event_bus = ToolEventBus()
