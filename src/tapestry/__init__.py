"""
Tapestry script engine: compiles indentation-structured automation scripts
into a flat jump-addressed instruction list and executes them one
instruction at a time against pluggable tools.
"""

from .spec.program import Instruction, OpCode, Program
from .spec.protocols import ActionDescriptor, ToolClient
from .compiler import ScriptParser, parse
from .runtime.context import RuntimeContext, Status
from .runtime.engine import ScriptEngine
from .runtime.evaluator import Evaluator
from .runtime.exceptions import (
    TapestryError,
    ScriptParseError,
    ScriptRuntimeError,
    NotIterableError,
    UnknownCallError,
    ToolInvocationError,
    ProgramNotRunnableError,
    StepLimitExceeded,
    ExecutionCancelled,
)
from .tools.registry import ToolRegistry, registry

__all__ = [
    "Instruction",
    "OpCode",
    "Program",
    "ActionDescriptor",
    "ToolClient",
    "ScriptParser",
    "parse",
    "RuntimeContext",
    "Status",
    "ScriptEngine",
    "Evaluator",
    "TapestryError",
    "ScriptParseError",
    "ScriptRuntimeError",
    "NotIterableError",
    "UnknownCallError",
    "ToolInvocationError",
    "ProgramNotRunnableError",
    "StepLimitExceeded",
    "ExecutionCancelled",
    "ToolRegistry",
    "registry",
]
