from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol


@dataclass(frozen=True)
class Message:
    """A catalog message resolved for one render call."""

    msg_id: str
    level: str
    text: str
    data: Dict[str, Any] = field(default_factory=dict)

    # Run correlation, when the message was raised for a script run
    run_id: Optional[str] = None
    line: Optional[int] = None


class Renderer(Protocol):
    def render(self, message: Message) -> None: ...
