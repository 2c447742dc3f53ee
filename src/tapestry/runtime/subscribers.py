from tapestry.common.messaging import bus
from .bus import MessageBus
from .events import InstructionExecuted, ScriptFinished, ScriptStarted, ToolInvoked


class HumanReadableLogSubscriber:
    """
    Listens to runtime events and translates them into semantic messages
    on the messaging bus. It acts as a bridge between the event domain
    and the user-facing message domain.
    """

    def __init__(self, event_bus: MessageBus, trace: bool = False):
        event_bus.subscribe(ScriptStarted, self.on_script_started)
        event_bus.subscribe(ScriptFinished, self.on_script_finished)
        event_bus.subscribe(ToolInvoked, self.on_tool_invoked)
        if trace:
            event_bus.subscribe(InstructionExecuted, self.on_instruction_executed)

    def on_script_started(self, event: ScriptStarted):
        bus.info(
            "run.started",
            run_id=event.run_id,
            instruction_count=event.instruction_count,
        )

    def on_script_finished(self, event: ScriptFinished):
        line = event.line if event.line is not None else "?"
        if event.status == "completed":
            bus.info(
                "run.finished_success",
                run_id=event.run_id,
                duration=event.duration,
                steps=event.steps,
            )
        elif event.status == "cancelled":
            bus.warning("run.cancelled", run_id=event.run_id, steps=event.steps)
        elif event.reason == "step_limit":
            bus.error(
                "run.step_limit", run_id=event.run_id, steps=event.steps, line=line
            )
        else:
            bus.error(
                "run.finished_failure",
                run_id=event.run_id,
                duration=event.duration,
                line=line,
                error=event.error,
            )

    def on_tool_invoked(self, event: ToolInvoked):
        args = ", ".join(f"{k}={v!r}" for k, v in event.args.items())
        bus.debug(
            "tool.invoked",
            run_id=event.run_id,
            tool_id=event.tool_id,
            action=event.action,
            args=args,
            duration=event.duration,
        )

    def on_instruction_executed(self, event: InstructionExecuted):
        bus.info(
            "instruction.executed",
            run_id=event.run_id,
            index=event.index,
            line=event.line,
            op=event.op,
        )
