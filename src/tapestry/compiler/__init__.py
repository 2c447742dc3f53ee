from .parser import ScriptParser, parse, parse_args

__all__ = ["ScriptParser", "parse", "parse_args"]
