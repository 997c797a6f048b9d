"""Math and trigonometry formula functions.

Trig functions work in radians; ``DEGREES`` / ``RADIANS`` convert.
Domain violations (``SQRT(-1)``, ``LN(0)``, ``ASIN(2)``) raise
:class:`FormulaDomainError`; overflow saturates to infinity.
"""

from __future__ import annotations

import math
import random
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Any, Callable

from tabular.formulas.errors import FormulaDomainError
from tabular.formulas.operators import power
from tabular.formulas.values import Number, fit_int, to_float, to_number
from tabular.functions.registry import Arity, builtin


def _unary_float(name: str, fn: Callable[[float], float], domain: Callable[[float], bool] | None = None) -> Callable:
    def impl(args: list) -> float:
        x = to_float(args[0], f"{name} argument")
        if domain is not None and not domain(x):
            raise FormulaDomainError(f"{name}: argument {x!r} is out of domain")
        try:
            return fn(x)
        except OverflowError:
            return math.inf
        except ValueError as exc:
            raise FormulaDomainError(f"{name}: {exc}") from exc

    impl.__name__ = f"_fn_{name.lower()}"
    return impl


for _name, _fn, _domain in (
    ("SIN", math.sin, None),
    ("COS", math.cos, None),
    ("TAN", math.tan, None),
    ("ASIN", math.asin, lambda x: -1 <= x <= 1),
    ("ACOS", math.acos, lambda x: -1 <= x <= 1),
    ("ATAN", math.atan, None),
    ("SINH", math.sinh, None),
    ("COSH", math.cosh, None),
    ("TANH", math.tanh, None),
    ("DEGREES", math.degrees, None),
    ("RADIANS", math.radians, None),
    ("EXP", math.exp, None),
    ("SQRT", math.sqrt, lambda x: x >= 0),
    ("LN", math.log, lambda x: x > 0),
    ("LOG10", math.log10, lambda x: x > 0),
):
    builtin(_name, Arity.FIXED, 1)(_unary_float(_name, _fn, _domain))


# ---------- Constants and random ----------


@builtin("PI", Arity.FIXED, 0)
def _fn_pi(args: list) -> float:
    return math.pi


@builtin("E", Arity.FIXED, 0)
def _fn_e(args: list) -> float:
    return math.e


@builtin("RAND", Arity.FIXED, 0)
def _fn_rand(args: list) -> float:
    """RAND(): uniform in [0, 1), unseeded, different on every pass."""
    return random.random()


@builtin("RANDBETWEEN", Arity.FIXED, 2)
def _fn_randbetween(args: list) -> int:
    lo = math.ceil(_finite(args[0], "RANDBETWEEN bottom"))
    hi = math.floor(_finite(args[1], "RANDBETWEEN top"))
    if lo > hi:
        raise FormulaDomainError(f"RANDBETWEEN: bottom {lo} is greater than top {hi}")
    return random.randint(lo, hi)


# ---------- Rounding and sign ----------


@builtin("ABS", Arity.FIXED, 1)
def _fn_abs(args: list) -> Number:
    x = to_number(args[0], "ABS argument")
    return fit_int(abs(x)) if isinstance(x, int) else abs(x)


@builtin("SIGN", Arity.FIXED, 1)
def _fn_sign(args: list) -> int:
    x = to_number(args[0], "SIGN argument")
    if math.isnan(x):
        raise FormulaDomainError("SIGN: argument is NaN")
    return (x > 0) - (x < 0)


def _keep_kind(x: Number, fn: Callable[[float], int]) -> Number:
    if isinstance(x, int) or not math.isfinite(x):
        return x
    return float(fn(x))


@builtin("FLOOR", Arity.FIXED, 1)
def _fn_floor(args: list) -> Number:
    return _keep_kind(to_number(args[0], "FLOOR argument"), math.floor)


@builtin("CEIL", Arity.FIXED, 1, aliases=("CEILING",))
def _fn_ceil(args: list) -> Number:
    return _keep_kind(to_number(args[0], "CEIL argument"), math.ceil)


@builtin("INT", Arity.FIXED, 1)
def _fn_int(args: list) -> Number:
    """INT(x): round down to the nearest integer."""
    x = to_number(args[0], "INT argument")
    if isinstance(x, int) or not math.isfinite(x):
        return x
    return fit_int(math.floor(x))


def _quantize(x: float, digits: int, rounding: str) -> float:
    if not math.isfinite(x) or (digits >= 0 and abs(x) >= 1e15):
        return x
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(x)).quantize(quantum, rounding=rounding))


@builtin("ROUND", Arity.FIXED, 1, 2)
def _fn_round(args: list) -> Number:
    """ROUND(x [, digits]): halves round away from zero."""
    x = to_number(args[0], "ROUND value")
    digits = _whole(args[1], "ROUND digits") if len(args) == 2 else 0
    if isinstance(x, int):
        if digits >= 0:
            return x
        return fit_int(int(_quantize(float(x), digits, ROUND_HALF_UP)))
    return _quantize(x, digits, ROUND_HALF_UP)


@builtin("TRUNC", Arity.FIXED, 1, 2)
def _fn_trunc(args: list) -> Number:
    x = to_number(args[0], "TRUNC value")
    digits = _whole(args[1], "TRUNC digits") if len(args) == 2 else 0
    if isinstance(x, int) and digits >= 0:
        return x
    result = _quantize(float(x), digits, ROUND_DOWN)
    return fit_int(int(result)) if isinstance(x, int) else result


# ---------- Powers and logs ----------


@builtin("POW", Arity.FIXED, 2, aliases=("POWER",))
def _fn_pow(args: list) -> Number:
    return power(args[0], args[1])


@builtin("LOG", Arity.FIXED, 1, 2)
def _fn_log(args: list) -> float:
    """LOG(x [, base]): base defaults to 10."""
    x = to_float(args[0], "LOG value")
    base = to_float(args[1], "LOG base") if len(args) == 2 else 10.0
    if x <= 0 or base <= 0 or base == 1:
        raise FormulaDomainError(f"LOG: undefined for value {x!r} and base {base!r}")
    return math.log(x, base)


@builtin("MOD", Arity.FIXED, 2)
def _fn_mod(args: list) -> Number:
    """MOD(a, b): remainder with the sign of the divisor; MOD(a, 0) is NaN."""
    a = to_number(args[0], "MOD dividend")
    b = to_number(args[1], "MOD divisor")
    if b == 0:
        return math.nan
    if isinstance(a, int) and isinstance(b, int):
        return a % b
    if not math.isfinite(a):
        return math.nan
    return float(a) % float(b)


@builtin("ATAN2", Arity.FIXED, 2)
def _fn_atan2(args: list) -> float:
    """ATAN2(y, x): angle of the point (x, y) in radians."""
    y = to_float(args[0], "ATAN2 y")
    x = to_float(args[1], "ATAN2 x")
    if x == 0 and y == 0:
        raise FormulaDomainError("ATAN2: both arguments are zero")
    return math.atan2(y, x)


# ---------- Integer functions ----------


def _finite(value: Any, where: str) -> float:
    x = to_float(value, where)
    if not math.isfinite(x):
        raise FormulaDomainError(f"{where} must be finite")
    return x


def _whole(value: Any, where: str) -> int:
    x = to_number(value, where)
    if not math.isfinite(x):
        raise FormulaDomainError(f"{where} must be finite")
    return int(x)


@builtin("FACT", Arity.FIXED, 1)
def _fn_fact(args: list) -> Number:
    n = _whole(args[0], "FACT argument")
    if n < 0:
        raise FormulaDomainError(f"FACT: negative argument {n}")
    if n > 170:
        return math.inf
    return fit_int(math.factorial(n))


def _n_k(args: list, name: str) -> tuple[int, int]:
    n = _whole(args[0], f"{name} n")
    k = _whole(args[1], f"{name} k")
    if n < 0 or k < 0 or k > n:
        raise FormulaDomainError(f"{name}: requires 0 <= k <= n, got n={n}, k={k}")
    return n, k


@builtin("COMBIN", Arity.FIXED, 2)
def _fn_combin(args: list) -> Number:
    n, k = _n_k(args, "COMBIN")
    return fit_int(math.comb(n, k))


@builtin("PERMUT", Arity.FIXED, 2)
def _fn_permut(args: list) -> Number:
    n, k = _n_k(args, "PERMUT")
    return fit_int(math.perm(n, k))


def _non_negative_ints(args: list, name: str) -> list[int]:
    values = [_whole(a, f"{name} argument") for a in args]
    if any(v < 0 for v in values):
        raise FormulaDomainError(f"{name}: arguments must be non-negative")
    return values


@builtin("GCD", Arity.VARIADIC, 1)
def _fn_gcd(args: list) -> int:
    return math.gcd(*_non_negative_ints(args, "GCD"))


@builtin("LCM", Arity.VARIADIC, 1)
def _fn_lcm(args: list) -> Number:
    return fit_int(math.lcm(*_non_negative_ints(args, "LCM")))
