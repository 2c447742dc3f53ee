import math
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from tapestry.spec.program import Instruction, OpCode, Program
from tapestry.tools.registry import ToolRegistry, registry as default_registry
from .bus import MessageBus
from .builtins import call_method
from .context import IteratorState, RuntimeContext, Status
from .evaluator import Evaluator, format_value
from .events import InstructionExecuted, ScriptFinished, ScriptStarted, ToolInvoked
from .exceptions import (
    ExecutionCancelled,
    NotIterableError,
    ScriptRuntimeError,
    StepLimitExceeded,
    ToolInvocationError,
    UnknownCallError,
    ProgramNotRunnableError,
)

# A handler returns the next instruction pointer when it jumps, None otherwise.
Handler = Callable[[Instruction, RuntimeContext], Awaitable[Optional[int]]]


class ScriptEngine:
    """
    Executes a compiled Program one instruction per ``step`` call.

    The engine holds no per-run state; everything lives in the
    RuntimeContext, so one engine can drive any number of contexts.
    """

    def __init__(
        self,
        bus: Optional[MessageBus] = None,
        registry: Optional[ToolRegistry] = None,
        evaluator: Optional[Evaluator] = None,
    ):
        self.bus = bus or MessageBus()
        self.registry = registry or default_registry
        self.evaluator = evaluator or Evaluator()
        self._handlers: Dict[OpCode, Handler] = {
            OpCode.NOOP: self._noop,
            OpCode.PRINT: self._print,
            OpCode.SLEEP: self._sleep,
            OpCode.ASSIGN: self._assign,
            OpCode.CALL: self._call,
            OpCode.ASSIGN_CALL: self._call,
            OpCode.JUMP: self._jump,
            OpCode.JUMP_IF_FALSE: self._jump_if_false,
            OpCode.ITER_INIT: self._iter_init,
            OpCode.ITER_NEXT: self._iter_next,
        }

    def create_context(
        self,
        log: Optional[Callable[[str], None]] = None,
        highlight_line: Optional[Callable[[int], None]] = None,
        registry: Optional[ToolRegistry] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        variables: Optional[Dict[str, Any]] = None,
    ) -> RuntimeContext:
        kwargs: Dict[str, Any] = {"registry": registry or self.registry, "sleep": sleep}
        if log is not None:
            kwargs["log"] = log
        if highlight_line is not None:
            kwargs["highlight_line"] = highlight_line
        if variables:
            kwargs["variables"] = dict(variables)
        return RuntimeContext(**kwargs)

    async def run(
        self, program: Program, ctx: RuntimeContext, max_steps: Optional[int] = None
    ) -> RuntimeContext:
        """Steps until the context reaches a terminal status."""
        while not ctx.status.is_terminal:
            if (
                max_steps is not None
                and ctx.steps >= max_steps
                and ctx.ip < len(program)
            ):
                error = StepLimitExceeded(
                    max_steps, line=program.instructions[ctx.ip].line
                )
                self._fail(ctx, error, reason="step_limit")
                raise error
            await self.step(program, ctx)
        return ctx

    async def step(self, program: Program, ctx: RuntimeContext) -> None:
        if ctx.status in (Status.COMPLETED, Status.ERROR):
            return
        if ctx.cancelled:
            raise ExecutionCancelled(f"Run {ctx.run_id} was cancelled")

        if ctx.status is Status.IDLE:
            self._start(program, ctx)
        elif ctx.status is Status.PAUSED:
            ctx.status = Status.RUNNING

        if not program.ok:
            error = ProgramNotRunnableError(program.error, line=program.error_line)
            self._fail(ctx, error)
            raise error

        if ctx.ip >= len(program):
            ctx.status = Status.COMPLETED
            self._finish(ctx)
            return

        index = ctx.ip
        op = program.instructions[index]
        ctx.highlight_line(op.line)

        try:
            jump = await self._handlers[op.op](op, ctx)
        except ExecutionCancelled:
            ctx.status = Status.CANCELLED
            self._finish(ctx)
            raise
        except ScriptRuntimeError as e:
            if e.line is None:
                e.line = op.line
            self._fail(ctx, e)
            raise
        except Exception as e:
            error = ScriptRuntimeError(str(e), line=op.line)
            self._fail(ctx, error)
            raise error from e

        ctx.steps += 1
        ctx.ip = jump if jump is not None else ctx.ip + 1
        self.bus.publish(
            InstructionExecuted(run_id=ctx.run_id, index=index, line=op.line, op=op.op.value)
        )

    # --- Lifecycle ---

    def _start(self, program: Program, ctx: RuntimeContext) -> None:
        ctx.status = Status.RUNNING
        ctx.started_at = time.time()
        self.bus.publish(
            ScriptStarted(run_id=ctx.run_id, instruction_count=len(program))
        )

    def _fail(
        self, ctx: RuntimeContext, error: ScriptRuntimeError, reason: Optional[str] = None
    ) -> None:
        ctx.status = Status.ERROR
        if error.line is not None:
            ctx.log(f"Error at line {error.line}: {error}")
        else:
            ctx.log(f"Error: {error}")
        self._finish(ctx, error=str(error), line=error.line, reason=reason)

    def _finish(
        self,
        ctx: RuntimeContext,
        error: Optional[str] = None,
        line: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        duration = time.time() - ctx.started_at if ctx.started_at else 0.0
        self.bus.publish(
            ScriptFinished(
                run_id=ctx.run_id,
                status=ctx.status.value,
                duration=duration,
                steps=ctx.steps,
                error=error,
                line=line,
                reason=reason,
            )
        )

    # --- Opcodes ---

    def _eval(self, expr: Optional[str], ctx: RuntimeContext) -> Any:
        return self.evaluator.evaluate(expr, ctx.variables)

    async def _noop(self, op: Instruction, ctx: RuntimeContext) -> Optional[int]:
        return None

    async def _print(self, op: Instruction, ctx: RuntimeContext) -> Optional[int]:
        ctx.log(format_value(self._eval(op.expr, ctx)))
        return None

    async def _sleep(self, op: Instruction, ctx: RuntimeContext) -> Optional[int]:
        # Script durations are seconds, as is the context delay.
        value = self._eval(op.expr, ctx)
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            return None
        if math.isfinite(seconds) and seconds * 1000 > 0:
            await ctx.sleep(seconds)
        return None

    async def _assign(self, op: Instruction, ctx: RuntimeContext) -> Optional[int]:
        ctx.variables[op.target] = self._eval(op.expr, ctx)
        return None

    async def _call(self, op: Instruction, ctx: RuntimeContext) -> Optional[int]:
        tool = ctx.registry.get(op.tool_id)
        if tool is not None:
            args = self.evaluator.resolve_args(op.args, ctx.variables)
            started = time.time()
            try:
                result = await tool.invoke(op.action, args)
            except (ScriptRuntimeError, ExecutionCancelled):
                raise
            except Exception as e:
                raise ToolInvocationError(op.tool_id, op.action, e, line=op.line) from e
            self.bus.publish(
                ToolInvoked(
                    run_id=ctx.run_id,
                    tool_id=op.tool_id,
                    action=op.action,
                    args=args,
                    duration=time.time() - started,
                )
            )
        elif op.tool_id in ctx.variables:
            args = self.evaluator.resolve_args(op.args, ctx.variables)
            result = call_method(op.tool_id, ctx.variables[op.tool_id], op.action, args)
        else:
            raise UnknownCallError(op.tool_id, op.action, line=op.line)

        if op.op is OpCode.ASSIGN_CALL:
            ctx.variables[op.target] = result
        return None

    async def _jump(self, op: Instruction, ctx: RuntimeContext) -> Optional[int]:
        return op.jump_target

    async def _jump_if_false(self, op: Instruction, ctx: RuntimeContext) -> Optional[int]:
        if not self._eval(op.condition, ctx):
            return op.jump_target
        return None

    async def _iter_init(self, op: Instruction, ctx: RuntimeContext) -> Optional[int]:
        items = self._eval(op.collection, ctx)
        if not isinstance(items, list):
            raise NotIterableError(op.collection, line=op.line)
        ctx.iterators[op.target] = IteratorState(items=items)
        return None

    async def _iter_next(self, op: Instruction, ctx: RuntimeContext) -> Optional[int]:
        state = ctx.iterators.get(op.target)
        if state is None or state.exhausted:
            ctx.iterators.pop(op.target, None)
            return op.jump_target
        ctx.variables[op.target] = state.advance()
        return None
