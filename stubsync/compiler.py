"""Reflection compiler -- stub text for a distribution from its live modules.

The reconciler only needs ``compile(ref) -> str``; an empty string means the
package exports nothing worth declaring.
"""

from __future__ import annotations

import importlib
import inspect
import logging
from types import ModuleType
from typing import Any

from stubsync.artifacts.models import PackageRef
from stubsync.errors import CompileError
from stubsync.manifest import Manifest

logger = logging.getLogger(__name__)

EMPTY = ""

CONSTANT_TYPES = (bool, int, float, str, bytes)


class ReflectionCompiler:
    """Builds ``.pyi`` text from the public members of a distribution's top-level modules."""

    def __init__(self, manifest: Manifest):
        self.manifest = manifest

    def compile(self, ref: PackageRef) -> str:
        module_names = self.manifest.top_level_modules(ref.name)
        modules: list[ModuleType] = []
        errors: list[str] = []

        for name in module_names:
            try:
                modules.append(importlib.import_module(name))
            except Exception as e:  # noqa: BLE001
                errors.append(f"{name}: {e}")

        if errors and not modules:
            raise CompileError(f"Could not import any module of {ref.name}: {'; '.join(errors)}")
        for error in errors:
            logger.debug("Skipped while compiling %s: %s", ref.name, error)

        sections = [section for section in map(render_module, modules) if section]
        if not sections:
            return EMPTY
        return "\n".join(sections)


def render_module(module: ModuleType) -> str:
    """Stub lines for one module's public members, or an empty string."""
    lines: list[str] = []
    for name, obj in public_members(module):
        if inspect.isclass(obj):
            lines.extend(render_class(name, obj))
        elif inspect.isfunction(obj) or inspect.isbuiltin(obj):
            lines.append(render_function(name, obj))
        elif isinstance(obj, CONSTANT_TYPES) and name.isupper():
            lines.append(f"{name}: {type(obj).__name__}")
        else:
            continue
        lines.append("")

    if not lines:
        return ""
    return "\n".join([f"# module: {module.__name__}", ""] + lines)


def public_members(module: ModuleType) -> list[tuple[str, Any]]:
    """Members defined by the module itself, honouring ``__all__`` when present."""
    exported = getattr(module, "__all__", None)
    members = []
    for name, obj in sorted(vars(module).items()):
        if exported is not None:
            if name not in exported:
                continue
        elif name.startswith("_"):
            continue
        owner = getattr(obj, "__module__", module.__name__)
        if exported is None and (inspect.isclass(obj) or inspect.isfunction(obj)) and owner != module.__name__:
            continue
        members.append((name, obj))
    return members


def render_function(name: str, func: Any, indent: str = "") -> str:
    prefix = "async def" if inspect.iscoroutinefunction(func) else "def"
    return f"{indent}{prefix} {name}{render_signature(func)}: ..."


def render_class(name: str, cls: type) -> list[str]:
    bases = [
        base.__qualname__ if base.__module__ in ("builtins", cls.__module__) else f"{base.__module__}.{base.__qualname__}"
        for base in cls.__bases__
        if base is not object
    ]
    header = f"class {name}({', '.join(bases)}):" if bases else f"class {name}:"

    body = []
    for attr, value in sorted(vars(cls).items()):
        if attr.startswith("_") and attr != "__init__":
            continue
        if isinstance(value, staticmethod):
            body.append("    @staticmethod")
            body.append(render_function(attr, value.__func__, indent="    "))
        elif isinstance(value, classmethod):
            body.append("    @classmethod")
            body.append(render_function(attr, value.__func__, indent="    "))
        elif isinstance(value, property):
            body.append("    @property")
            body.append(f"    def {attr}(self){_return_annotation(value.fget)}: ...")
        elif inspect.isfunction(value):
            body.append(render_function(attr, value, indent="    "))

    return [header] + (body or ["    ..."])


def render_signature(func: Any) -> str:
    """Parameter list and return annotation with every default elided to ``...``."""
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return "(*args, **kwargs)"

    params = []
    seen_keyword_only = False
    for param in signature.parameters.values():
        text = param.name
        if param.kind == param.VAR_POSITIONAL:
            text = f"*{text}"
            seen_keyword_only = True
        elif param.kind == param.VAR_KEYWORD:
            text = f"**{text}"
        elif param.kind == param.KEYWORD_ONLY and not seen_keyword_only:
            params.append("*")
            seen_keyword_only = True
        if param.annotation is not param.empty:
            text += f": {_annotation(param.annotation)}"
            if param.default is not param.empty:
                text += " = ..."
        elif param.default is not param.empty:
            text += "=..."
        params.append(text)
        if param.kind == param.POSITIONAL_ONLY and _is_last_positional_only(signature, param):
            params.append("/")

    returns = ""
    if signature.return_annotation is not signature.empty:
        returns = f" -> {_annotation(signature.return_annotation)}"
    return f"({', '.join(params)}){returns}"


def _is_last_positional_only(signature: inspect.Signature, param: inspect.Parameter) -> bool:
    positional_only = [p for p in signature.parameters.values() if p.kind == p.POSITIONAL_ONLY]
    return positional_only[-1] is param


def _annotation(annotation: Any) -> str:
    if isinstance(annotation, str):
        return annotation
    return inspect.formatannotation(annotation)


def _return_annotation(func: Any) -> str:
    if func is None:
        return ""
    try:
        annotation = inspect.signature(func).return_annotation
    except (TypeError, ValueError):
        return ""
    if annotation is inspect.Signature.empty:
        return ""
    return f" -> {_annotation(annotation)}"
