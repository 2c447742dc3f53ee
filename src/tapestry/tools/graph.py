"""
An in-memory graph document exposed as the ``graph`` tool.

Nodes are plain dicts so scripts can read them with dotted paths
(``node.name``, ``node.attributes.owner``). All access to the store goes
through a single asyncio.Lock.
"""

import asyncio
from datetime import date
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from tapestry.spec.protocols import ActionDescriptor
from .events import ToolActionEvent, ToolEventBus

ACTIONS = [
    ActionDescriptor("get_all_nodes", "Return all nodes"),
    ActionDescriptor("get_node_by_name", "Find node by name", ["name"]),
    ActionDescriptor(
        "query_nodes",
        'Find nodes by tag, name or attribute (e.g. tag="Risk" or location="London")',
        ["tag", "name", "...attributes"],
    ),
    ActionDescriptor("add_node", "Create a node", ["name", "tags", "notes"]),
    ActionDescriptor("delete_node", "Delete a node and its edges", ["id"]),
    ActionDescriptor(
        "add_edge", "Connect nodes", ["source", "target", "label", "direction"]
    ),
    ActionDescriptor("get_neighbors", "Get connected nodes", ["id"]),
    ActionDescriptor("get_connections", "Get detailed connections for a node", ["id"]),
    ActionDescriptor("set_attribute", "Set a custom attribute on a node", ["id", "key", "value"]),
    ActionDescriptor("add_tag", "Add a tag to a node", ["id", "tag"]),
    ActionDescriptor("remove_tag", "Remove a tag from a node", ["id", "tag"]),
    ActionDescriptor("set_highlight", "Set persistent node highlight", ["id", "color"]),
    ActionDescriptor("clear_highlight", "Remove persistent node highlight", ["id"]),
    ActionDescriptor("get_date", "Get current date string"),
    ActionDescriptor(
        "get_formatted_attributes", "Get attributes as list of strings", ["id"]
    ),
    ActionDescriptor("get_formatted_lists", "Get custom lists as list of strings", ["id"]),
]


DEFAULT_HIGHLIGHT = "#facc15"

# Arrow drawn from the queried node's point of view, keyed by
# (edge direction, queried node is the edge source).
_ARROWS = {
    ("TO", True): "-->",
    ("TO", False): "<--",
    ("FROM", True): "<--",
    ("FROM", False): "-->",
    ("BOTH", True): "<-->",
    ("BOTH", False): "<-->",
}


class GraphToolError(Exception):
    pass


def _split_tags(tags: Any) -> List[str]:
    if not tags:
        return []
    if isinstance(tags, list):
        return [str(t) for t in tags]
    return [t.strip() for t in str(tags).split(",") if t.strip()]


class InMemoryGraphTool:
    id = "graph"

    def __init__(self, event_bus: Optional[ToolEventBus] = None):
        self.nodes: Dict[str, Dict[str, Any]] = {}
        self.edges: List[Dict[str, Any]] = []
        self._event_bus = event_bus
        self._lock = asyncio.Lock()
        self._actions: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "get_all_nodes": self._get_all_nodes,
            "get_node_by_name": self._get_node_by_name,
            "query_nodes": self._query_nodes,
            "add_node": self._add_node,
            "delete_node": self._delete_node,
            "add_edge": self._add_edge,
            "get_neighbors": self._get_neighbors,
            "get_connections": self._get_connections,
            "set_attribute": self._set_attribute,
            "add_tag": self._add_tag,
            "remove_tag": self._remove_tag,
            "set_highlight": self._set_highlight,
            "clear_highlight": self._clear_highlight,
            "get_date": self._get_date,
            "get_formatted_attributes": self._get_formatted_attributes,
            "get_formatted_lists": self._get_formatted_lists,
        }

    def list_actions(self) -> List[ActionDescriptor]:
        return list(ACTIONS)

    async def invoke(self, action: str, args: Dict[str, Any]) -> Any:
        handler = self._actions.get(action)
        if handler is None:
            raise GraphToolError(f"Unknown graph action '{action}'")
        async with self._lock:
            return handler(args)

    async def perform(self, action: str, **args: Any) -> Any:
        """
        Runs an action on behalf of an interactive user and announces it on
        the tool event bus, so a recorder can turn it into script source.
        """
        result = await self.invoke(action, args)
        if self._event_bus is not None:
            self._event_bus.emit(ToolActionEvent(self.id, action, dict(args)))
        return result

    # --- Actions ---

    def _node(self, args: Dict[str, Any]) -> Dict[str, Any]:
        node_id = args.get("id", args.get("0"))
        node = self.nodes.get(node_id)
        if node is None:
            raise GraphToolError(f"Node '{node_id}' not found")
        return node

    def _get_all_nodes(self, args):
        return list(self.nodes.values())

    def _get_node_by_name(self, args):
        name = str(args.get("name", args.get("0", ""))).lower()
        for node in self.nodes.values():
            if node["name"].lower() == name:
                return node
        return None

    def _query_nodes(self, args):
        results = list(self.nodes.values())
        for key, value in args.items():
            if not value:
                continue
            term = str(value).lower()
            if key == "tag":
                results = [n for n in results if term in (t.lower() for t in n["tags"])]
            elif key == "name":
                results = [n for n in results if term in n["name"].lower()]
            else:
                results = [
                    n
                    for n in results
                    if str(n["attributes"].get(key, "")).lower() == term
                ]
        return results

    def _add_node(self, args):
        name = args.get("name", args.get("0"))
        if not name:
            raise GraphToolError("Name is required")
        existing = self._get_node_by_name({"name": name})
        if existing is not None:
            return existing

        node = {
            "id": str(uuid4()),
            "name": str(name),
            "tags": _split_tags(args.get("tags")),
            "notes": args.get("notes") or "",
            "attributes": {},
            "lists": {},
            "meta": {},
        }
        self.nodes[node["id"]] = node
        return node

    def _delete_node(self, args):
        node_id = args.get("id", args.get("0"))
        if node_id not in self.nodes:
            return False
        del self.nodes[node_id]
        self.edges = [
            e for e in self.edges if e["source"] != node_id and e["target"] != node_id
        ]
        return True

    def _add_edge(self, args):
        source, target = args.get("source"), args.get("target")
        if not source or not target:
            raise GraphToolError("Source and Target IDs required")
        edge = {
            "id": str(uuid4()),
            "source": source,
            "target": target,
            "label": args.get("label") or "",
            "direction": str(args.get("direction") or "TO").upper(),
        }
        self.edges.append(edge)
        return edge

    def _get_neighbors(self, args):
        node_id = self._node(args)["id"]
        neighbor_ids = [e["target"] for e in self.edges if e["source"] == node_id]
        neighbor_ids += [e["source"] for e in self.edges if e["target"] == node_id]
        return [self.nodes[i] for i in dict.fromkeys(neighbor_ids) if i in self.nodes]

    def _set_attribute(self, args):
        node = self._node(args)
        key = args.get("key")
        if not key:
            raise GraphToolError("Attribute key is required")
        node["attributes"][str(key)] = args.get("value")
        return node

    def _add_tag(self, args):
        node = self._node(args)
        tag = args.get("tag")
        if tag and tag not in node["tags"]:
            node["tags"].append(str(tag))
        return node

    def _remove_tag(self, args):
        node = self._node(args)
        tag = str(args.get("tag", "")).lower()
        node["tags"] = [t for t in node["tags"] if t.lower() != tag]
        return node

    def _get_date(self, args):
        return date.today().isoformat()

    def _get_connections(self, args):
        node_id = self._node(args)["id"]
        connections = []
        for edge in self.edges:
            if node_id not in (edge["source"], edge["target"]):
                continue
            is_source = edge["source"] == node_id
            other_id = edge["target"] if is_source else edge["source"]
            # A dangling edge still reports its far end.
            neighbor = self.nodes.get(other_id) or {
                "id": other_id,
                "name": "Unknown",
                "tags": [],
                "notes": "",
                "attributes": {},
            }
            connections.append(
                {
                    "id": edge["id"],
                    "neighbor": neighbor,
                    "label": edge["label"],
                    "arrow": _ARROWS.get((edge["direction"], is_source), "---"),
                    "is_source": is_source,
                }
            )
        return connections

    def _set_highlight(self, args):
        node = self._node(args)
        node["meta"]["highlight_color"] = str(args.get("color") or DEFAULT_HIGHLIGHT)
        return node

    def _clear_highlight(self, args):
        node = self._node(args)
        node["meta"].pop("highlight_color", None)
        return node

    def _get_formatted_attributes(self, args):
        node = self.nodes.get(args.get("id", args.get("0")))
        if node is None:
            return []
        return [f"{key}: {value}" for key, value in node["attributes"].items()]

    def _get_formatted_lists(self, args):
        node = self.nodes.get(args.get("id", args.get("0")))
        if node is None:
            return []
        return [
            f"{key}: {', '.join(map(str, items))}"
            for key, items in node["lists"].items()
        ]
