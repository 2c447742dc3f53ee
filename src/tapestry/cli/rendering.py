from rich.console import Console
from rich.theme import Theme

from tapestry.common.messaging import Message
from tapestry.common.renderers import LevelFilter

theme = Theme(
    {
        "debug": "dim",
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
    }
)


class RichCliRenderer(LevelFilter):
    """Themed diagnostics on stderr; script output stays on stdout."""

    def __init__(self, min_level: str = "INFO"):
        super().__init__(min_level)
        self._console = Console(theme=theme, stderr=True)

    def render(self, message: Message) -> None:
        if not self.enabled(message):
            return

        text = message.text
        if message.level == "DEBUG" and message.run_id:
            text = f"[{message.run_id[:8]}] {text}"

        # Messages carry script text, which must not be read as markup.
        self._console.print(
            text,
            style=message.level.lower(),
            markup=False,
            highlight=False,
            soft_wrap=True,
        )
