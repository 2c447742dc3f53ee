from typing import Any, Callable, Dict

from .exceptions import UnknownCallError

# Methods callable on values held in script variables. Each takes the
# receiver and the evaluated arguments; the return value becomes the
# result of the call.
MethodImpl = Callable[[Any, Dict[str, Any]], Any]


def _list_append(items: list, args: Dict[str, Any]) -> Any:
    items.append(args.get("0"))
    return items


def _list_pop(items: list, args: Dict[str, Any]) -> Any:
    return items.pop() if items else None


def _list_remove(items: list, args: Dict[str, Any]) -> Any:
    value = args.get("0")
    if value in items:
        items.remove(value)
    return None


def _list_clear(items: list, args: Dict[str, Any]) -> Any:
    items.clear()
    return None


def _str_split(text: str, args: Dict[str, Any]) -> Any:
    return text.split(args.get("0") or " ")


def _str_replace(text: str, args: Dict[str, Any]) -> Any:
    return text.replace(str(args["0"]), str(args["1"]))


LIST_METHODS: Dict[str, MethodImpl] = {
    "append": _list_append,
    "pop": _list_pop,
    "remove": _list_remove,
    "clear": _list_clear,
    "length": lambda items, args: len(items),
}

STRING_METHODS: Dict[str, MethodImpl] = {
    "split": _str_split,
    "replace": _str_replace,
    "lower": lambda text, args: text.lower(),
    "upper": lambda text, args: text.upper(),
}

# Arguments a method cannot do without.
_REQUIRED = {
    ("list", "append"): ("0",),
    ("list", "remove"): ("0",),
    ("str", "replace"): ("0", "1"),
}


def call_method(name: str, value: Any, action: str, args: Dict[str, Any]) -> Any:
    if isinstance(value, list):
        kind, methods = "list", LIST_METHODS
    elif isinstance(value, str):
        kind, methods = "str", STRING_METHODS
    else:
        raise UnknownCallError(name, action)

    impl = methods.get(action)
    required = _REQUIRED.get((kind, action), ())
    if impl is None or any(key not in args for key in required):
        raise UnknownCallError(name, action)
    return impl(value, args)
