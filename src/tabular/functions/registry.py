"""Central registry for built-in and extension formula functions.

Names are case-insensitive: they are stored upper-cased.  Built-ins are
registered at import time by the ``tabular.formulas.fn_*`` modules;
extensions are registered later (by plugins or the host) and take
priority over a built-in of the same name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Arity(str, Enum):
    FIXED = "fixed"
    VARIADIC = "variadic"
    RANGE = "range"
    TWO_RANGES = "two_ranges"
    RANGE_SCALAR = "range_scalar"


# Argument counts implied by the range-shaped arity classes.
_SHAPE_COUNTS: dict[Arity, tuple[int, int]] = {
    Arity.RANGE: (1, 1),
    Arity.TWO_RANGES: (2, 2),
    Arity.RANGE_SCALAR: (2, 2),
}


@dataclass(frozen=True)
class FunctionSpec:
    """Descriptor for one callable formula function.

    Attributes:
        name: Upper-cased lookup name.
        impl: The implementation.  Its calling convention depends on
            ``arity``, ``lazy`` and ``builtin``; see ``tabular.formulas.evaluator``.
        arity: Argument shape class.
        min_args: Fewest arguments accepted.
        max_args: Most arguments accepted, or ``None`` for no limit.
        lazy: The implementation receives unevaluated AST nodes.
        text: Empty cell arguments read as ``""`` instead of ``0``.
        builtin: False for externally registered functions.
    """

    name: str
    impl: Callable[..., Any]
    arity: Arity = Arity.FIXED
    min_args: int = 0
    max_args: int | None = None
    lazy: bool = False
    text: bool = False
    builtin: bool = True

    def check_count(self, n: int) -> None:
        """Raise :class:`FormulaArityError` unless *n* arguments are acceptable."""
        # Local import to avoid circular dependency
        from tabular.formulas.errors import FormulaArityError

        if self.max_args is not None and self.min_args == self.max_args and n != self.min_args:
            raise FormulaArityError(
                self.name,
                f"{self.name} requires exactly {self.min_args} argument{'s' if self.min_args != 1 else ''}, got {n}",
            )
        if n < self.min_args:
            raise FormulaArityError(
                self.name, f"{self.name} requires at least {self.min_args} argument(s), got {n}"
            )
        if self.max_args is not None and n > self.max_args:
            raise FormulaArityError(
                self.name, f"{self.name} accepts at most {self.max_args} argument(s), got {n}"
            )

    def describe(self) -> str:
        if self.max_args is None:
            count = f"{self.min_args}+"
        elif self.min_args == self.max_args:
            count = str(self.min_args)
        else:
            count = f"{self.min_args}-{self.max_args}"
        return f"{self.name} ({self.arity.value}, {count} args{', lazy' if self.lazy else ''})"


_BUILTINS: dict[str, FunctionSpec] = {}
_EXTENSIONS: dict[str, FunctionSpec] = {}


def _ensure_builtins() -> None:
    if not _BUILTINS:
        # fn_* modules register on import
        import tabular.formulas.evaluator  # noqa: F401


def _make_spec(
    name: str,
    fn: Callable[..., Any],
    arity: Arity,
    min_args: int | None,
    max_args: int | None,
    **flags: bool,
) -> FunctionSpec:
    if arity in _SHAPE_COUNTS:
        lo, hi = _SHAPE_COUNTS[arity]
        min_args = lo if min_args is None else min_args
        max_args = hi if max_args is None else max_args
    elif arity is Arity.FIXED:
        min_args = 0 if min_args is None else min_args
        max_args = min_args if max_args is None else max_args
    else:
        min_args = 0 if min_args is None else min_args
    return FunctionSpec(
        name=name.upper(),
        impl=fn,
        arity=arity,
        min_args=min_args,
        max_args=max_args,
        **flags,
    )


def builtin(
    name: str,
    arity: Arity = Arity.FIXED,
    min_args: int | None = None,
    max_args: int | None = None,
    *,
    lazy: bool = False,
    text: bool = False,
    aliases: tuple[str, ...] = (),
) -> Callable:
    """Decorator that registers a built-in function by name.

    Args:
        name: The lookup name for this function.
        arity: Argument shape class.
        min_args: Fewest arguments (defaults follow the arity class).
        max_args: Most arguments; for ``FIXED`` it defaults to *min_args*.
        lazy: Pass unevaluated AST nodes instead of values.
        text: Empty cell arguments read as ``""``.
        aliases: Extra names bound to the same implementation.

    Returns:
        The original function, unmodified.
    """

    def decorator(fn: Callable) -> Callable:
        for key in (name, *aliases):
            spec = _make_spec(key, fn, arity, min_args, max_args, lazy=lazy, text=text)
            _BUILTINS[spec.name] = spec
        return fn

    return decorator


def register_function(
    name: str,
    fn: Callable[..., Any],
    arity: Arity = Arity.VARIADIC,
    min_args: int | None = None,
    max_args: int | None = None,
) -> FunctionSpec:
    """Register an extension function callable from formulas.

    The callable receives already-evaluated arguments (a range argument
    arrives as a list of values) and must return a number, text or a
    boolean.  Re-registering a name, or registering the name of a
    built-in, overrides the previous binding.

    Returns:
        The stored descriptor.
    """
    from tabular.logging.events import EventType, emit_info

    if not name or not name.replace("_", "").replace(".", "").isalnum():
        raise ValueError(f"Invalid function name: {name!r}")
    _ensure_builtins()
    spec = _make_spec(name, fn, Arity(arity), min_args, max_args, builtin=False)
    shadowed = spec.name in _BUILTINS or spec.name in _EXTENSIONS
    _EXTENSIONS[spec.name] = spec
    logger.debug("registered extension %s (overrides=%s)", spec.name, shadowed)
    emit_info(
        EventType.function_registered,
        f"Registered function {spec.name}",
        {"function": spec.name, "arity": spec.arity.value, "overrides": shadowed},
    )
    return spec


def extension(
    name: str,
    arity: Arity = Arity.VARIADIC,
    min_args: int | None = None,
    max_args: int | None = None,
) -> Callable:
    """Decorator form of :func:`register_function`, used by plugin files."""

    def decorator(fn: Callable) -> Callable:
        register_function(name, fn, arity, min_args, max_args)
        return fn

    return decorator


def unregister_function(name: str) -> bool:
    """Remove an extension; the built-in of the same name (if any) is visible again."""
    return _EXTENSIONS.pop(name.upper(), None) is not None


def clear_extensions() -> None:
    _EXTENSIONS.clear()


def lookup(name: str) -> FunctionSpec:
    """Look up a function, extensions first.

    Raises:
        FormulaFunctionError: If no function is registered under *name*.
    """
    from tabular.formulas.errors import FormulaFunctionError

    _ensure_builtins()
    key = name.upper()
    spec = _EXTENSIONS.get(key) or _BUILTINS.get(key)
    if spec is None:
        raise FormulaFunctionError(key)
    return spec


def is_registered(name: str) -> bool:
    _ensure_builtins()
    key = name.upper()
    return key in _EXTENSIONS or key in _BUILTINS


def list_functions() -> list[FunctionSpec]:
    """All visible functions sorted by name, extensions shadowing built-ins."""
    _ensure_builtins()
    merged = dict(_BUILTINS)
    merged.update(_EXTENSIONS)
    return [merged[k] for k in sorted(merged)]
