import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .protocols import Message, Renderer

logger = logging.getLogger(__name__)

LEVELS = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
}

LOCALES_DIR = Path(__file__).parent.parent / "locales"


def level_value(level: str) -> int:
    return LEVELS.get(level.upper(), LEVELS["INFO"])


class MessageStore:
    """
    Message templates keyed by id, read from ``locales/<locale>/*.json``.
    Ids missing from the requested locale fall back to the ``fallback``
    locale.
    """

    def __init__(self, locale: str = "en", fallback: str = "en"):
        self.locale = locale
        self._messages: Dict[str, str] = {}
        if fallback != locale:
            self._messages.update(self._read_catalogs(fallback))
        self._messages.update(self._read_catalogs(locale))

    @staticmethod
    def _read_catalogs(locale: str) -> Dict[str, str]:
        messages: Dict[str, str] = {}
        locale_path = LOCALES_DIR / locale
        if not locale_path.is_dir():
            logger.debug("No message catalogs for locale %r", locale)
            return messages

        for catalog in sorted(locale_path.glob("*.json")):
            try:
                messages.update(json.loads(catalog.read_text(encoding="utf-8")))
            except (json.JSONDecodeError, OSError) as e:
                logger.error("Failed to load message catalog %s: %s", catalog, e)
        return messages

    def __contains__(self, msg_id: str) -> bool:
        return msg_id in self._messages

    def get(self, msg_id: str, default: str = "", **kwargs: Any) -> str:
        template = self._messages.get(msg_id, default or f"<{msg_id}>")
        try:
            return template.format(**kwargs)
        except KeyError as e:
            return f"<Formatting error for '{msg_id}': missing key {e}>"


class MessageBus:
    """
    Resolves message ids against the store and hands the result to the
    current renderer. ``run_id`` and ``line`` keyword arguments are lifted
    onto the Message so renderers can correlate output with a run.
    """

    def __init__(self, store: MessageStore):
        self._store = store
        self._renderer: Optional[Renderer] = None

    @property
    def store(self) -> MessageStore:
        return self._store

    def set_renderer(self, renderer: Optional[Renderer]):
        self._renderer = renderer

    def _render(self, level: str, msg_id: str, **kwargs: Any) -> None:
        if not self._renderer:
            return
        message = Message(
            msg_id=msg_id,
            level=level.upper(),
            text=self._store.get(msg_id, **kwargs),
            data={k: v for k, v in kwargs.items() if k != "run_id"},
            run_id=kwargs.get("run_id"),
            line=kwargs.get("line") if isinstance(kwargs.get("line"), int) else None,
        )
        self._renderer.render(message)

    def debug(self, msg_id: str, **kwargs: Any) -> None:
        self._render("debug", msg_id, **kwargs)

    def info(self, msg_id: str, **kwargs: Any) -> None:
        self._render("info", msg_id, **kwargs)

    def warning(self, msg_id: str, **kwargs: Any) -> None:
        self._render("warning", msg_id, **kwargs)

    def error(self, msg_id: str, **kwargs: Any) -> None:
        self._render("error", msg_id, **kwargs)


_default_store = MessageStore(locale="en")
bus = MessageBus(store=_default_store)
