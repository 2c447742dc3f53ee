from typing import List

QUOTES = "\"'"
OPENERS = "([{"
CLOSERS = ")]}"


def split_top_level(text: str, sep: str, maxsplit: int = -1) -> List[str]:
    """
    Splits ``text`` on ``sep``, ignoring separators that occur inside a
    quoted string literal or inside brackets.

    Backslash escapes inside literals are honoured, so ``"a\\"+b"`` is a
    single literal. With ``maxsplit`` >= 0 at most that many splits are made.
    """
    parts: List[str] = []
    start = 0
    depth = 0
    quote = None
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in QUOTES:
            quote = ch
        elif ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            depth = max(0, depth - 1)
        elif depth == 0 and len(parts) != maxsplit and text.startswith(sep, i):
            parts.append(text[start:i])
            i += len(sep)
            start = i
            continue
        i += 1

    parts.append(text[start:])
    return parts
