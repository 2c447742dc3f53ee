from typing import Optional


class TapestryError(Exception):
    """Base class for all errors raised by the script engine."""

    pass


class ScriptParseError(TapestryError):
    """Raised when a line of source cannot be compiled."""

    def __init__(self, line: int, text: str, message: Optional[str] = None):
        self.line = line
        self.text = text
        super().__init__(message or f"Syntax error on line {line}: {text}")


class ScriptRuntimeError(TapestryError):
    """Base class for failures raised while stepping a program."""

    def __init__(self, message: str, line: Optional[int] = None):
        self.line = line
        super().__init__(message)


class NotIterableError(ScriptRuntimeError):
    def __init__(self, expr: str, line: Optional[int] = None):
        self.expr = expr
        super().__init__(f"Variable '{expr}' is not iterable", line=line)


class UnknownCallError(ScriptRuntimeError):
    def __init__(self, target: str, action: str, line: Optional[int] = None):
        self.target = target
        self.action = action
        super().__init__(
            f"Tool or variable method '{target}.{action}' not found", line=line
        )


class ToolInvocationError(ScriptRuntimeError):
    """Wraps an exception raised by a tool's own ``invoke``."""

    def __init__(
        self, tool_id: str, action: str, error: Exception, line: Optional[int] = None
    ):
        self.tool_id = tool_id
        self.action = action
        self.error = error
        super().__init__(f"{tool_id}.{action} failed: {error}", line=line)


class ProgramNotRunnableError(ScriptRuntimeError):
    """Raised when a program that failed to parse is handed to the engine."""

    pass


class StepLimitExceeded(ScriptRuntimeError):
    def __init__(self, max_steps: int, line: Optional[int] = None):
        self.max_steps = max_steps
        super().__init__(f"Step limit of {max_steps} exceeded", line=line)


class ExecutionCancelled(TapestryError):
    """Raised when the host cancels a context that is still running."""

    pass
