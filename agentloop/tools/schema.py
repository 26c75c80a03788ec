"""Parameter schema and description inference for plain callables."""

import functools
import inspect
import types
import typing
from typing import Any, Callable, Literal, Union

from agentloop.logging import get_logger

log = get_logger(__name__)

_TYPE_MAP: dict[type, str] = {
    str: "string",
    bool: "boolean",
    int: "integer",
    float: "number",
    list: "array",
    tuple: "array",
    set: "array",
    frozenset: "array",
    dict: "object",
}

# Unannotated or unrecognised parameters are described as strings
DEFAULT_JSON_TYPE = "string"


def callable_name(func: Callable[..., Any]) -> str:
    """Best-effort public name for a callable."""
    if isinstance(func, functools.partial):
        return callable_name(func.func)
    name = getattr(func, "__name__", "")
    if not name or name == "<lambda>":
        name = type(func).__name__ if not inspect.isroutine(func) else "anonymous"
    return name


def describe_callable(func: Callable[..., Any], name: str) -> str:
    """First docstring paragraph, or a generic fallback naming the tool."""
    if isinstance(func, functools.partial):
        func = func.func
    doc = inspect.getdoc(func) or ""
    paragraph = doc.strip().split("\n\n", 1)[0]
    summary = " ".join(line.strip() for line in paragraph.splitlines()).strip()
    return summary or f"Execute the {name} tool."


def json_type_for(annotation: Any) -> dict[str, Any]:
    """Map a Python annotation to a JSON schema fragment."""
    if annotation is inspect.Parameter.empty or annotation is Any or annotation is None:
        return {"type": DEFAULT_JSON_TYPE}

    if isinstance(annotation, str):
        # Unresolved forward reference
        lowered = annotation.strip().lower()
        for py_type, json_type in _TYPE_MAP.items():
            if lowered == py_type.__name__ or lowered.startswith(f"{py_type.__name__}["):
                return {"type": json_type}
        return {"type": DEFAULT_JSON_TYPE}

    origin = typing.get_origin(annotation)

    if origin is Union or origin is types.UnionType:
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return json_type_for(members[0])
        return {"type": DEFAULT_JSON_TYPE}

    if origin is Literal:
        values = list(typing.get_args(annotation))
        fragment = json_type_for(type(values[0])) if values else {"type": DEFAULT_JSON_TYPE}
        fragment["enum"] = values
        return fragment

    if origin is typing.Annotated:
        return json_type_for(typing.get_args(annotation)[0])

    base = origin or annotation
    if isinstance(base, type):
        for py_type, json_type in _TYPE_MAP.items():
            if issubclass(base, py_type):
                fragment: dict[str, Any] = {"type": json_type}
                if json_type == "array":
                    args = typing.get_args(annotation)
                    if len(args) == 1:
                        fragment["items"] = json_type_for(args[0])
                return fragment

    return {"type": DEFAULT_JSON_TYPE}


def _resolve_hints(func: Callable[..., Any]) -> dict[str, Any]:
    if isinstance(func, functools.partial):
        target = func.func
    elif inspect.isroutine(func):
        target = func
    else:
        target = getattr(type(func), "__call__", func)
    try:
        return typing.get_type_hints(target, include_extras=True)
    except Exception:
        # Unresolvable forward references fall back to raw annotations
        return dict(getattr(target, "__annotations__", {}) or {})


def infer_parameters(func: Callable[..., Any]) -> dict[str, Any]:
    """Build an object schema from a callable's signature.

    Every named parameter becomes a property. Parameters without a default
    are listed in ``required``. ``*args`` and ``**kwargs`` are ignored.
    """
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        log.debug("Signature unavailable, using empty schema", tool=callable_name(func))
        return {"type": "object", "properties": {}}

    hints = _resolve_hints(func)
    properties: dict[str, Any] = {}
    required: list[str] = []

    for param in signature.parameters.values():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        annotation = hints.get(param.name, param.annotation)
        properties[param.name] = json_type_for(annotation)
        if param.default is inspect.Parameter.empty:
            required.append(param.name)

    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def accepts_var_keyword(func: Callable[..., Any]) -> bool:
    """Whether the callable takes ``**kwargs``."""
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return True
    return any(
        param.kind is inspect.Parameter.VAR_KEYWORD
        for param in signature.parameters.values()
    )
