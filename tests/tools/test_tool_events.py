import asyncio
import logging

import pytest

from tapestry.compiler import parse
from tapestry.tools.events import (
    ActionRecorder,
    ToolActionEvent,
    ToolEventBus,
    format_call,
    format_literal,
)
from tapestry.tools.graph import InMemoryGraphTool


@pytest.mark.asyncio
async def test_delivery_is_deferred_to_the_loop():
    event_bus = ToolEventBus()
    received = []
    event_bus.subscribe(received.append)

    event = ToolActionEvent("graph", "add_node", {"name": "A"})
    event_bus.emit(event)
    assert received == []

    await asyncio.sleep(0)
    assert received == [event]


def test_delivery_without_a_loop_is_immediate():
    event_bus = ToolEventBus()
    received = []
    event_bus.subscribe(received.append)

    event_bus.emit(ToolActionEvent("graph", "get_date"))

    assert len(received) == 1


def test_unsubscribe():
    event_bus = ToolEventBus()
    received = []
    unsubscribe = event_bus.subscribe(received.append)

    unsubscribe()
    unsubscribe()
    event_bus.emit(ToolActionEvent("graph", "get_date"))

    assert received == []


def test_failing_listener_does_not_stop_delivery(caplog):
    event_bus = ToolEventBus()
    received = []

    def broken(event):
        raise ValueError("listener bug")

    event_bus.subscribe(broken)
    event_bus.subscribe(received.append)

    with caplog.at_level(logging.ERROR, logger="tapestry.tools.events"):
        event_bus.emit(ToolActionEvent("graph", "get_date"))

    assert len(received) == 1
    assert "graph.get_date" in caplog.text


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, "None"),
        (True, "True"),
        (False, "False"),
        (3, "3"),
        (2.5, "2.5"),
        ("Alpha", '"Alpha"'),
        ('say "hi"\n', '"say \\"hi\\"\\n"'),
        (["a", 1], '["a", 1]'),
    ],
)
def test_format_literal(value, expected):
    assert format_literal(value) == expected


def test_format_call():
    event = ToolActionEvent("graph", "add_node", {"name": "Alpha", "tags": "Risk"})
    assert format_call(event) == 'graph.add_node(name="Alpha", tags="Risk")'
    assert format_call(ToolActionEvent("graph", "get_date")) == "graph.get_date()"


def test_recorder_only_records_while_active():
    event_bus = ToolEventBus()
    recorder = ActionRecorder(event_bus)

    event_bus.emit(ToolActionEvent("graph", "get_date"))
    with recorder:
        assert recorder.recording
        event_bus.emit(ToolActionEvent("graph", "add_node", {"name": "A"}))
    event_bus.emit(ToolActionEvent("graph", "get_date"))

    assert not recorder.recording
    assert recorder.lines == ['graph.add_node(name="A")']


def test_recorder_appends_to_existing_source():
    event_bus = ToolEventBus()
    recorder = ActionRecorder(event_bus, source='print("start")')

    assert recorder.source == 'print("start")'
    recorder.start()
    recorder.start()
    event_bus.emit(ToolActionEvent("graph", "get_date"))
    recorder.stop()

    assert recorder.lines == ["graph.get_date()"]
    assert recorder.source == 'print("start")\ngraph.get_date()\n'


@pytest.mark.asyncio
async def test_recorded_actions_replay_as_a_script(engine, registry, make_context):
    event_bus = ToolEventBus()
    live = InMemoryGraphTool(event_bus=event_bus)

    with ActionRecorder(event_bus) as recorder:
        await live.perform("add_node", name="Alpha", tags="Risk, Core", notes='a "quoted" note')
        await live.perform("add_node", name="Beta")
        await asyncio.sleep(0)

    program = parse(recorder.source)
    assert program.ok, program.error

    replay = InMemoryGraphTool()
    registry.register(replay)
    await engine.run(program, make_context())

    nodes = sorted(replay.nodes.values(), key=lambda n: n["name"])
    assert [n["name"] for n in nodes] == ["Alpha", "Beta"]
    assert nodes[0]["tags"] == ["Risk", "Core"]
    assert nodes[0]["notes"] == 'a "quoted" note'
