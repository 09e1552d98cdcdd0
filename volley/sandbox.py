"""Script sandbox for pre-request and post-response hooks.

A script is a short Python snippet. It runs in a fresh namespace that
exposes exactly three names:

- ``request``: the working request as a JSON-shaped dict (mutable, so a
  pre-script can add headers or rewrite the body before it is built)
- ``response``: read-only view of the outcome (None before transmission)
- ``log(*args)``: JSON-serializes each argument and appends the
  space-joined line to the log list

Builtins are limited to pure computation plus the standard exception
classes; there is no ``__import__``, ``open``, ``getattr``, ``eval`` or
``exec``. Before compiling, the source is rejected if it names anything
starting with ``__`` or touches frame/traceback attributes, so the bindings
cannot be used to climb back into this module's globals. This is crash
containment, not a security boundary: the script shares the interpreter
with the caller.

Failures never propagate. A script that raises is recorded as
``Script Error: ...``; a script that cannot be prepared (syntax error,
disallowed name) is recorded as ``System Error: ...``.
"""

from __future__ import annotations

import ast
import builtins
from types import CodeType, MappingProxyType
from typing import Any, Callable, Mapping

import orjson

from .exceptions import ScriptFailure
from .logging_config import get_logger

logger = get_logger("sandbox")

SCRIPT_ERROR_PREFIX = "Script Error: "
SYSTEM_ERROR_PREFIX = "System Error: "
SCRIPT_FILENAME = "<script>"

_SAFE_BUILTIN_NAMES = (
    "__build_class__",
    "abs", "all", "any", "bool", "bytes", "chr", "dict", "divmod", "enumerate",
    "filter", "float", "format", "frozenset", "hasattr", "hash", "int", "isinstance",
    "issubclass", "iter", "len", "list", "map", "max", "min", "next", "object", "ord",
    "pow", "range", "repr", "reversed", "round", "set", "slice", "sorted", "str",
    "sum", "tuple", "type", "zip",
    "ArithmeticError", "AssertionError", "AttributeError", "BaseException",
    "Exception", "IndexError", "KeyError", "LookupError", "NameError",
    "NotImplementedError", "OverflowError", "RuntimeError", "StopIteration",
    "TypeError", "UnicodeError", "ValueError", "ZeroDivisionError",
)
SAFE_BUILTINS: dict[str, Any] = {name: getattr(builtins, name) for name in _SAFE_BUILTIN_NAMES}

# Frame, code and traceback introspection leads back to the caller's globals
_BLOCKED_ATTRIBUTES = frozenset({
    "gi_frame", "gi_code", "gi_yieldfrom", "cr_frame", "cr_code", "cr_await",
    "ag_frame", "ag_code", "ag_await", "f_back", "f_globals", "f_locals",
    "f_builtins", "f_code", "tb_frame", "tb_next", "mro",
})
SCRIPT_MODULE_NAME = "volley_script"


def _is_blocked(name: str) -> bool:
    return name.startswith("__") or name in _BLOCKED_ATTRIBUTES


def check_source(tree: ast.AST) -> None:
    """Reject dunder names and introspection attributes.

    Raises:
        ScriptFailure: On the first disallowed name or attribute
    """
    for node in ast.walk(tree):
        if isinstance(node, ast.Attribute):
            name = node.attr
        elif isinstance(node, ast.Name):
            name = node.id
        else:
            continue
        if _is_blocked(name):
            raise ScriptFailure(f"Access to '{name}' is not allowed (line {node.lineno})")


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Mapping):
        return dict(obj)
    if isinstance(obj, (set, frozenset)):
        return list(obj)
    if isinstance(obj, bytes):
        return obj.decode("utf-8", "replace")
    return repr(obj)


def _serialize(value: Any) -> str:
    try:
        return orjson.dumps(value, default=_json_default, option=orjson.OPT_NON_STR_KEYS).decode("utf-8")
    except orjson.JSONEncodeError:
        return repr(value)


def format_log_line(*args: Any) -> str:
    return " ".join(_serialize(a) for a in args)


def readonly_view(value: Any) -> Any:
    """Recursively wrap dicts in MappingProxyType and lists in tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: readonly_view(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(readonly_view(v) for v in value)
    return value


def _make_log(logs: list[str]) -> Callable[..., None]:
    def log(*args: Any) -> None:
        logs.append(format_log_line(*args))

    return log


def _describe(error: BaseException) -> str:
    text = str(error)
    return text if text else type(error).__name__


def _execute(code: CodeType, namespace: dict[str, Any]) -> None:
    try:
        exec(code, namespace)
    except Exception as e:  # noqa: BLE001
        raise ScriptFailure(_describe(e), original_error=e) from e


def run_script(
    source: str | None,
    *,
    request: dict[str, Any],
    response: Mapping[str, Any] | None = None,
    logs: list[str],
) -> None:
    """Run ``source`` against the given request/response context.

    Args:
        source: Script text; empty or whitespace-only is a no-op
        request: Working request dict, mutated in place by the script
        response: Outcome view for post-scripts; wrapped read-only
        logs: Append-only sink for ``log()`` output and error lines
    """
    if not source or not source.strip():
        return
    try:
        tree = ast.parse(source, SCRIPT_FILENAME, "exec")
        check_source(tree)
        code = compile(tree, SCRIPT_FILENAME, "exec")
        namespace: dict[str, Any] = {
            "__builtins__": dict(SAFE_BUILTINS),
            "__name__": SCRIPT_MODULE_NAME,
            "request": request,
            "response": readonly_view(response) if response is not None else None,
            "log": _make_log(logs),
        }
    except Exception as e:  # noqa: BLE001
        logger.debug("Script setup failed: %s", e)
        logs.append(SYSTEM_ERROR_PREFIX + _describe(e))
        return
    try:
        _execute(code, namespace)
    except ScriptFailure as e:
        logger.debug("Script raised: %s", e.message)
        logs.append(SCRIPT_ERROR_PREFIX + e.message)
