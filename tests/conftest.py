import pytest

from tapestry.compiler import parse
from tapestry.runtime.bus import MessageBus
from tapestry.runtime.engine import ScriptEngine
from tapestry.tools.registry import ToolRegistry
from tapestry.testing import RecordingSleep, SpySubscriber


@pytest.fixture
def bus_and_spy():
    """Provides a MessageBus instance and an attached SpySubscriber."""
    bus = MessageBus()
    spy = SpySubscriber(bus)
    return bus, spy


@pytest.fixture
def registry():
    # Isolated from the process-wide registry and from installed plugins.
    return ToolRegistry(discover=False)


@pytest.fixture
def engine(bus_and_spy, registry):
    bus, _ = bus_and_spy
    return ScriptEngine(bus=bus, registry=registry)


@pytest.fixture
def output():
    return []


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def make_context(engine, output, fake_sleep):
    def factory(**kwargs):
        kwargs.setdefault("log", output.append)
        kwargs.setdefault("sleep", fake_sleep)
        return engine.create_context(**kwargs)

    return factory


@pytest.fixture
def run_script(engine, make_context):
    """Parses and runs a script to completion, returning its context."""

    async def runner(source: str, **kwargs):
        program = parse(source)
        assert program.ok, program.error
        ctx = make_context()
        await engine.run(program, ctx, **kwargs)
        return ctx

    return runner
