import asyncio
from typing import Callable, Optional

from tapestry.spec.program import Instruction, Program
from tapestry.compiler import parse
from tapestry.runtime.bus import MessageBus
from tapestry.runtime.context import RuntimeContext, Status
from tapestry.runtime.engine import ScriptEngine
from tapestry.runtime.subscribers import HumanReadableLogSubscriber
from tapestry.tools.registry import ToolRegistry, registry as default_registry

from tapestry.common.messaging import bus, protocols
from tapestry.common.renderers import CliRenderer, JsonRenderer


class ScriptApp:
    """
    Wires a script to an engine: parses the source, sets up rendering of
    user-facing messages and connects the runtime event bus to them.
    """

    def __init__(
        self,
        source: str,
        log_level: str = "INFO",
        log_format: str = "human",
        registry: Optional[ToolRegistry] = None,
        max_steps: Optional[int] = None,
        output: Optional[Callable[[str], None]] = None,
        trace: bool = False,
        renderer: Optional[protocols.Renderer] = None,
    ):
        self.source = source
        self.max_steps = max_steps
        self.output = output or print
        self.registry = registry or default_registry

        # 1. Compile
        self.program: Program = parse(source)

        # 2. Setup Messaging & Rendering
        if log_format == "json":
            self.renderer = JsonRenderer(min_level=log_level)
        elif renderer is not None:
            self.renderer = renderer
        else:
            self.renderer = CliRenderer(min_level=log_level)
        bus.set_renderer(self.renderer)

        # 3. Setup Event System
        self.event_bus = MessageBus()
        self.log_subscriber = HumanReadableLogSubscriber(self.event_bus, trace=trace)

        # 4. Engine
        self.engine = ScriptEngine(bus=self.event_bus, registry=self.registry)
        self.context: Optional[RuntimeContext] = None

    def new_context(self) -> RuntimeContext:
        self.context = self.engine.create_context(log=self.output)
        return self.context

    async def run_async(
        self, before_step: Optional[Callable[[Instruction], None]] = None
    ) -> RuntimeContext:
        """
        Runs the program to a terminal status. With ``before_step`` the run
        is single-stepped: the context is paused between instructions and the
        callback is invoked with the instruction about to execute.
        """
        self.program.raise_for_error()
        ctx = self.new_context()

        if before_step is None:
            await self.engine.run(self.program, ctx, max_steps=self.max_steps)
            return ctx

        while not ctx.status.is_terminal:
            if ctx.status is not Status.IDLE:
                ctx.status = Status.PAUSED
            if ctx.ip < len(self.program):
                before_step(self.program.instructions[ctx.ip])
            await self.engine.step(self.program, ctx)
        return ctx

    def run(
        self, before_step: Optional[Callable[[Instruction], None]] = None
    ) -> RuntimeContext:
        return asyncio.run(self.run_async(before_step=before_step))

    def stop(self) -> None:
        if self.context is not None:
            self.context.cancel()
