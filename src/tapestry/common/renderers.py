import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

from tapestry.common.messaging import Message, level_value


class LevelFilter:
    """Drops messages below ``min_level``; shared by every renderer."""

    def __init__(self, min_level: str = "INFO"):
        self.min_level = min_level.upper()
        self._min_level_val = level_value(min_level)

    def enabled(self, message: Message) -> bool:
        return level_value(message.level) >= self._min_level_val


class CliRenderer(LevelFilter):
    """Plain text, one message per line. Writes to stderr unless told otherwise."""

    def __init__(self, stream: Optional[TextIO] = None, min_level: str = "INFO"):
        super().__init__(min_level)
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        # Resolved late so redirected stderr (e.g. under a test runner) is honoured.
        return self._stream if self._stream is not None else sys.stderr

    def render(self, message: Message) -> None:
        if self.enabled(message):
            print(message.text, file=self.stream)


class JsonRenderer(CliRenderer):
    """One JSON record per message, for log shippers."""

    def render(self, message: Message) -> None:
        if not self.enabled(message):
            return

        record: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": message.level,
            "event_id": message.msg_id,
            "message": message.text,
        }
        if message.run_id is not None:
            record["run_id"] = message.run_id
        if message.line is not None:
            record["line"] = message.line
        record["data"] = message.data

        print(json.dumps(record, default=repr), file=self.stream)
