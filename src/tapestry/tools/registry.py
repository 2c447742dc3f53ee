import importlib.metadata
import logging
from typing import Dict, List, Optional

from tapestry.spec.protocols import ToolClient

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "tapestry.tools"


class ToolRegistry:
    """
    Maps tool ids to tool clients. Scripts reach a tool by writing
    ``<id>.<action>(...)``.
    """

    _instance = None

    def __init__(self, discover: bool = True):
        self._tools: Dict[str, ToolClient] = {}
        self._loaded = not discover

    @classmethod
    def instance(cls) -> "ToolRegistry":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def register(self, tool: ToolClient) -> None:
        self._tools[tool.id] = tool
        logger.debug("Registered tool: %s", tool.id)

    def unregister(self, tool_id: str) -> None:
        if self._tools.pop(tool_id, None) is not None:
            logger.debug("Unregistered tool: %s", tool_id)

    def get(self, tool_id: str) -> Optional[ToolClient]:
        self._ensure_loaded()
        return self._tools.get(tool_id)

    def list_tools(self) -> List[ToolClient]:
        self._ensure_loaded()
        return list(self._tools.values())

    def clear(self) -> None:
        self._tools.clear()

    def __contains__(self, tool_id: str) -> bool:
        return self.get(tool_id) is not None

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self._loaded = True
            self._discover_entry_points()

    def _discover_entry_points(self) -> None:
        for ep in importlib.metadata.entry_points(group=ENTRY_POINT_GROUP):
            try:
                tool_cls = ep.load()
                tool = tool_cls()
            except Exception as e:
                logger.warning("Error loading tool plugin %s: %s", ep.name, e)
                continue

            if not hasattr(tool, "invoke") or not hasattr(tool, "id"):
                logger.warning(
                    "Plugin %s does not implement the ToolClient protocol. Skipping.",
                    ep.name,
                )
                continue

            # Explicit registrations win over discovered plugins.
            self._tools.setdefault(tool.id, tool)


# Global registry accessor
registry = ToolRegistry.instance()
