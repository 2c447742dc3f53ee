"""
Single pass compiler from script source to a flat instruction list.

Every source line produces at least one instruction. Blocks (``if``,
``else``, ``for``) are tracked on a stack together with the index of the
instruction whose jump target must be backpatched once the block closes.
A block closes when a non-blank line is indented at or below the block
header, or at the end of input.
"""

import re
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from tapestry.spec.program import Instruction, OpCode, Program, UNRESOLVED
from tapestry.runtime.exceptions import ScriptParseError
from .lexical import split_top_level

_ELSE = re.compile(r"^else\s*:\s*(#.*)?$")
_PRINT = re.compile(r"^print\((.*)\)$")
_SLEEP = re.compile(r"^(?:time\.)?sleep\((.*)\)$")
_FOR = re.compile(r"^for\s+(\w+)\s+in\s+(.+):$")
_IF = re.compile(r"^if\s+(.+):$")
_AUG_ASSIGN = re.compile(r"^(\w+)\s*\+=\s*(.+)$")
_ASSIGN = re.compile(r"^(\w+)\s*=(?!=)\s*(.+)$")
_CALL = re.compile(r"^([a-zA-Z0-9_]+)\.([a-zA-Z0-9_]+)\((.*)\)$")
_NAMED_ARG = re.compile(r"^([a-zA-Z_]\w*)\s*=(?!=)\s*(.*)$", re.S)


@dataclass
class _Block:
    kind: str  # "if", "else" or "for"
    index: int
    indent: int


def parse_args(args_str: str) -> Dict[str, str]:
    """
    Parses the text between the parentheses of a call.

    Named arguments keep their name, bare ones are keyed "0", "1", ... in
    order. Values stay unevaluated.
    """
    args: Dict[str, str] = {}
    if not args_str or not args_str.strip():
        return args

    position = 0
    for part in split_top_level(args_str, ","):
        part = part.strip()
        if not part:
            continue
        named = _NAMED_ARG.match(part)
        if named:
            args[named.group(1)] = named.group(2).strip()
        else:
            args[str(position)] = part
            position += 1
    return args


class _Compiler:
    def __init__(self, source: str):
        self.lines = source.split("\n")
        self.ops: List[Instruction] = []
        self.blocks: List[_Block] = []

    def compile(self) -> List[Instruction]:
        for number, raw in enumerate(self.lines, start=1):
            self._compile_line(number, raw)

        while self.blocks:
            self._close(self.blocks.pop(), len(self.lines))

        self._check_resolved()
        return self.ops

    def _emit(self, instruction: Instruction) -> int:
        self.ops.append(instruction)
        return len(self.ops) - 1

    def _patch(self, index: int, target: int) -> None:
        self.ops[index] = replace(self.ops[index], jump_target=target)

    def _close(self, block: _Block, line: int) -> None:
        if block.kind == "for":
            # Loop back to the ITER_NEXT; exhaustion lands after this jump.
            self._emit(
                Instruction(
                    OpCode.JUMP, line=line, indent=block.indent, jump_target=block.index
                )
            )
        self._patch(block.index, len(self.ops))

    def _close_blocks(self, indent: int, line: int) -> Optional[_Block]:
        last_closed = None
        while self.blocks and indent <= self.blocks[-1].indent:
            last_closed = self.blocks.pop()
            self._close(last_closed, line)
        return last_closed

    def _compile_line(self, number: int, raw: str) -> None:
        text = raw.strip()
        if not text or text.startswith("#"):
            self._emit(Instruction(OpCode.NOOP, line=number))
            return

        indent = len(raw) - len(raw.lstrip())
        last_closed = self._close_blocks(indent, number)

        if _ELSE.match(text):
            self._compile_else(number, text, indent, last_closed)
            return

        match = _PRINT.match(text)
        if match:
            self._emit(
                Instruction(OpCode.PRINT, line=number, indent=indent, expr=match.group(1))
            )
            return

        match = _SLEEP.match(text)
        if match:
            self._emit(
                Instruction(OpCode.SLEEP, line=number, indent=indent, expr=match.group(1))
            )
            return

        match = _FOR.match(text)
        if match:
            var = match.group(1)
            self._emit(
                Instruction(
                    OpCode.ITER_INIT,
                    line=number,
                    indent=indent,
                    target=var,
                    collection=match.group(2).strip(),
                )
            )
            check = self._emit(
                Instruction(
                    OpCode.ITER_NEXT,
                    line=number,
                    indent=indent,
                    target=var,
                    jump_target=UNRESOLVED,
                )
            )
            self.blocks.append(_Block("for", check, indent))
            return

        match = _IF.match(text)
        if match:
            index = self._emit(
                Instruction(
                    OpCode.JUMP_IF_FALSE,
                    line=number,
                    indent=indent,
                    condition=match.group(1).strip(),
                    jump_target=UNRESOLVED,
                )
            )
            self.blocks.append(_Block("if", index, indent))
            return

        match = _AUG_ASSIGN.match(text)
        if match:
            var = match.group(1)
            self._emit(
                Instruction(
                    OpCode.ASSIGN,
                    line=number,
                    indent=indent,
                    target=var,
                    expr=f"{var} + {match.group(2).strip()}",
                )
            )
            return

        match = _ASSIGN.match(text)
        if match:
            var, rhs = match.group(1), match.group(2).strip()
            call = _CALL.match(rhs)
            if call:
                self._emit(
                    Instruction(
                        OpCode.ASSIGN_CALL,
                        line=number,
                        indent=indent,
                        target=var,
                        tool_id=call.group(1),
                        action=call.group(2),
                        args=parse_args(call.group(3)),
                    )
                )
            else:
                self._emit(
                    Instruction(
                        OpCode.ASSIGN, line=number, indent=indent, target=var, expr=rhs
                    )
                )
            return

        call = _CALL.match(text)
        if call:
            self._emit(
                Instruction(
                    OpCode.CALL,
                    line=number,
                    indent=indent,
                    tool_id=call.group(1),
                    action=call.group(2),
                    args=parse_args(call.group(3)),
                )
            )
            return

        raise ScriptParseError(number, text)

    def _compile_else(
        self, number: int, text: str, indent: int, last_closed: Optional[_Block]
    ) -> None:
        if not (last_closed and last_closed.kind == "if" and last_closed.indent == indent):
            raise ScriptParseError(
                number,
                text,
                f"Syntax error on line {number}: 'else' must follow an 'if' "
                "block at the same indentation.",
            )

        # Ends the true branch: jumps over the else body.
        skip = self._emit(
            Instruction(OpCode.JUMP, line=number, indent=indent, jump_target=UNRESOLVED)
        )
        # The false branch starts right after that jump.
        if self.ops[last_closed.index].jump_target == skip:
            self._patch(last_closed.index, skip + 1)
        self.blocks.append(_Block("else", skip, indent))

    def _check_resolved(self) -> None:
        end = len(self.ops)
        for index, op in enumerate(self.ops):
            if op.is_jump and not (op.jump_target is not None and 0 <= op.jump_target <= end):
                raise ScriptParseError(
                    op.line,
                    "",
                    f"Unresolved jump target at instruction {index} (line {op.line})",
                )


class ScriptParser:
    @staticmethod
    def parse(source: str) -> Program:
        try:
            ops = _Compiler(source).compile()
        except ScriptParseError as e:
            return Program(source=source, error=str(e), error_line=e.line)
        return Program(source=source, instructions=tuple(ops))


def parse(source: str) -> Program:
    return ScriptParser.parse(source)
