import pytest

from tapestry.runtime.exceptions import ToolInvocationError
from tapestry.tools.graph import GraphToolError, InMemoryGraphTool


@pytest.fixture
def graph():
    return InMemoryGraphTool()


@pytest.mark.asyncio
async def test_add_node_and_lookup(graph):
    node = await graph.invoke("add_node", {"name": "Alpha", "tags": "Risk, Core"})

    assert node["name"] == "Alpha"
    assert node["tags"] == ["Risk", "Core"]
    assert node["attributes"] == {}
    assert await graph.invoke("get_node_by_name", {"name": "alpha"}) is node
    assert await graph.invoke("get_node_by_name", {"0": "Alpha"}) is node
    assert await graph.invoke("get_node_by_name", {"name": "Gamma"}) is None


@pytest.mark.asyncio
async def test_add_node_reuses_existing_name(graph):
    first = await graph.invoke("add_node", {"name": "Alpha"})
    again = await graph.invoke("add_node", {"name": "ALPHA"})

    assert again is first
    assert len(await graph.invoke("get_all_nodes", {})) == 1


@pytest.mark.asyncio
async def test_add_node_requires_name(graph):
    with pytest.raises(GraphToolError):
        await graph.invoke("add_node", {})


@pytest.mark.asyncio
async def test_edges_and_neighbors(graph):
    a = await graph.invoke("add_node", {"name": "A"})
    b = await graph.invoke("add_node", {"name": "B"})
    c = await graph.invoke("add_node", {"name": "C"})
    await graph.invoke("add_edge", {"source": a["id"], "target": b["id"]})
    await graph.invoke("add_edge", {"source": c["id"], "target": a["id"], "label": "x"})

    neighbors = await graph.invoke("get_neighbors", {"id": a["id"]})
    assert [n["name"] for n in neighbors] == ["B", "C"]

    assert await graph.invoke("delete_node", {"id": a["id"]}) is True
    assert graph.edges == []
    assert await graph.invoke("delete_node", {"id": a["id"]}) is False


@pytest.mark.asyncio
async def test_add_edge_requires_endpoints(graph):
    with pytest.raises(GraphToolError):
        await graph.invoke("add_edge", {"source": "x"})


@pytest.mark.asyncio
async def test_attributes_and_tags(graph):
    node = await graph.invoke("add_node", {"name": "Site"})
    node_id = node["id"]

    await graph.invoke("set_attribute", {"id": node_id, "key": "location", "value": "London"})
    await graph.invoke("add_tag", {"id": node_id, "tag": "Office"})
    await graph.invoke("add_tag", {"id": node_id, "tag": "Office"})
    assert node["attributes"] == {"location": "London"}
    assert node["tags"] == ["Office"]

    await graph.invoke("remove_tag", {"id": node_id, "tag": "office"})
    assert node["tags"] == []


@pytest.mark.asyncio
async def test_query_nodes(graph):
    await graph.invoke("add_node", {"name": "London HQ", "tags": "Office"})
    paris = await graph.invoke("add_node", {"name": "Paris", "tags": "Office, Risk"})
    await graph.invoke("set_attribute", {"id": paris["id"], "key": "country", "value": "FR"})

    by_tag = await graph.invoke("query_nodes", {"tag": "risk"})
    by_name = await graph.invoke("query_nodes", {"name": "hq"})
    by_attribute = await graph.invoke("query_nodes", {"country": "fr"})
    combined = await graph.invoke("query_nodes", {"tag": "office", "name": "paris"})

    assert [n["name"] for n in by_tag] == ["Paris"]
    assert [n["name"] for n in by_name] == ["London HQ"]
    assert [n["name"] for n in by_attribute] == ["Paris"]
    assert [n["name"] for n in combined] == ["Paris"]


@pytest.mark.asyncio
async def test_unknown_node_and_action(graph):
    with pytest.raises(GraphToolError, match="not found"):
        await graph.invoke("get_neighbors", {"id": "nope"})
    with pytest.raises(GraphToolError, match="Unknown graph action"):
        await graph.invoke("explode", {})


@pytest.mark.asyncio
async def test_connections_describe_direction(graph):
    a = await graph.invoke("add_node", {"name": "A"})
    b = await graph.invoke("add_node", {"name": "B"})
    c = await graph.invoke("add_node", {"name": "C"})
    await graph.invoke(
        "add_edge", {"source": a["id"], "target": b["id"], "label": "owns"}
    )
    await graph.invoke(
        "add_edge", {"source": c["id"], "target": a["id"], "direction": "both"}
    )
    await graph.invoke("add_edge", {"source": a["id"], "target": "gone"})

    connections = await graph.invoke("get_connections", {"id": a["id"]})

    summary = [(x["neighbor"]["name"], x["arrow"], x["is_source"]) for x in connections]
    assert summary == [
        ("B", "-->", True),
        ("C", "<-->", False),
        ("Unknown", "-->", True),
    ]
    assert connections[0]["label"] == "owns"

    from_b = await graph.invoke("get_connections", {"id": b["id"]})
    assert [c["arrow"] for c in from_b] == ["<--"]


@pytest.mark.asyncio
async def test_highlight(graph):
    node = await graph.invoke("add_node", {"name": "A"})

    await graph.invoke("set_highlight", {"id": node["id"]})
    assert node["meta"]["highlight_color"] == "#facc15"

    await graph.invoke("set_highlight", {"id": node["id"], "color": "red"})
    assert node["meta"]["highlight_color"] == "red"

    await graph.invoke("clear_highlight", {"id": node["id"]})
    assert node["meta"] == {}


@pytest.mark.asyncio
async def test_formatted_attributes_and_lists(graph):
    node = await graph.invoke("add_node", {"name": "A"})
    await graph.invoke(
        "set_attribute", {"id": node["id"], "key": "owner", "value": "Ada"}
    )
    node["lists"]["risks"] = ["fire", "flood"]

    assert await graph.invoke("get_formatted_attributes", {"id": node["id"]}) == [
        "owner: Ada"
    ]
    assert await graph.invoke("get_formatted_lists", {"id": node["id"]}) == [
        "risks: fire, flood"
    ]
    assert await graph.invoke("get_formatted_attributes", {"id": "missing"}) == []
    assert await graph.invoke("get_formatted_lists", {"id": "missing"}) == []

@pytest.mark.asyncio
async def test_get_date(graph):
    value = await graph.invoke("get_date", {})
    assert len(value) == 10 and value[4] == "-"


def test_list_actions(graph):
    names = [a.name for a in graph.list_actions()]
    assert "add_node" in names
    assert "query_nodes" in names


@pytest.mark.asyncio
async def test_script_drives_the_graph(registry, run_script, output):
    registry.register(InMemoryGraphTool())

    ctx = await run_script(
        "\n".join(
            [
                'a = graph.add_node(name="Alpha", tags="Risk, Core")',
                'b = graph.add_node("Beta")',
                'graph.add_edge(source=a.id, target=b.id, label="uses")',
                "near = graph.get_neighbors(id=a.id)",
                "for n in near:",
                "    print(n.name)",
                'risky = graph.query_nodes(tag="risk")',
                "print(risky.length)",
            ]
        )
    )

    assert output == ["Beta", "1"]
    assert ctx.variables["a"]["tags"] == ["Risk", "Core"]


@pytest.mark.asyncio
async def test_graph_errors_surface_as_tool_failures(registry, run_script, output):
    registry.register(InMemoryGraphTool())

    with pytest.raises(ToolInvocationError) as excinfo:
        await run_script('graph.get_neighbors(id="missing")')

    assert isinstance(excinfo.value.__cause__, GraphToolError)
    assert output[-1].startswith("Error at line 1: graph.get_neighbors failed")
