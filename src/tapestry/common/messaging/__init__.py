from .bus import LEVELS, MessageBus, MessageStore, bus, level_value
from .protocols import Message
from . import protocols

__all__ = [
    "LEVELS",
    "Message",
    "MessageBus",
    "MessageStore",
    "bus",
    "level_value",
    "protocols",
]
