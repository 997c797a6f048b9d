"""Aggregate and statistical formula functions over ranges.

Every function here takes a :class:`RangeValue`.  Empty cells and text
are skipped; a cell holding an error makes the whole aggregate fail.
Moments and order statistics are computed with polars.
"""

from __future__ import annotations

import math
from collections import Counter

import polars as pl

from tabular.formulas.errors import FormulaDomainError
from tabular.formulas.references import RangeValue
from tabular.formulas.values import Number, Value, fit_int, is_number, to_float
from tabular.functions.registry import Arity, builtin


def _series(values: list[Number]) -> pl.Series:
    return pl.Series("v", [float(v) for v in values], dtype=pl.Float64)


def _require(values: list[Number], n: int, name: str) -> None:
    if len(values) < n:
        raise FormulaDomainError(f"{name} needs at least {n} numeric values, got {len(values)}")


# ---------- Basic aggregates ----------


@builtin("SUM", Arity.RANGE)
def _fn_sum(rv: RangeValue) -> Number:
    values = rv.numbers("SUM")
    if all(isinstance(v, int) for v in values):
        return fit_int(sum(values))
    return sum(float(v) for v in values)


@builtin("AVG", Arity.RANGE, aliases=("AVERAGE", "MEAN"))
def _fn_avg(rv: RangeValue) -> float:
    """AVG(range): mean of the numeric cells; NaN when there are none."""
    values = rv.numbers("AVG")
    if not values:
        return math.nan
    return _fn_sum(rv) / len(values)


@builtin("MIN", Arity.RANGE)
def _fn_min(rv: RangeValue) -> Number:
    values = rv.numbers("MIN")
    return min(values) if values else math.nan


@builtin("MAX", Arity.RANGE)
def _fn_max(rv: RangeValue) -> Number:
    values = rv.numbers("MAX")
    return max(values) if values else math.nan


@builtin("COUNT", Arity.RANGE)
def _fn_count(rv: RangeValue) -> int:
    """COUNT(range): number of numeric cells."""
    return sum(1 for v in rv.values if is_number(v))


@builtin("COUNTA", Arity.RANGE)
def _fn_counta(rv: RangeValue) -> int:
    """COUNTA(range): number of non-empty cells."""
    return len(rv.present())


@builtin("PROD", Arity.RANGE, aliases=("PRODUCT",))
def _fn_prod(rv: RangeValue) -> Number:
    values = rv.numbers("PROD")
    if not values:
        return 0
    result = math.prod(values)
    return fit_int(result) if isinstance(result, int) else float(result)


@builtin("SUMSQ", Arity.RANGE)
def _fn_sumsq(rv: RangeValue) -> Number:
    values = rv.numbers("SUMSQ")
    if all(isinstance(v, int) for v in values):
        return fit_int(sum(v * v for v in values))
    return sum(float(v) * float(v) for v in values)


@builtin("GEOMEAN", Arity.RANGE)
def _fn_geomean(rv: RangeValue) -> float:
    values = rv.numbers("GEOMEAN")
    if not values:
        return math.nan
    if any(v <= 0 for v in values):
        raise FormulaDomainError("GEOMEAN requires positive values")
    return math.exp(math.fsum(math.log(v) for v in values) / len(values))


@builtin("HARMEAN", Arity.RANGE)
def _fn_harmean(rv: RangeValue) -> float:
    values = rv.numbers("HARMEAN")
    if not values:
        return math.nan
    if any(v <= 0 for v in values):
        raise FormulaDomainError("HARMEAN requires positive values")
    return len(values) / math.fsum(1.0 / v for v in values)


# ---------- Order statistics ----------


def _quantile(values: list[Number], q: float) -> float:
    """Linear interpolation between order statistics at position q * (n - 1)."""
    result = _series(values).quantile(q, interpolation="linear")
    return math.nan if result is None else float(result)


@builtin("MEDIAN", Arity.RANGE)
def _fn_median(rv: RangeValue) -> float:
    values = rv.numbers("MEDIAN")
    return _quantile(values, 0.5) if values else math.nan


@builtin("MODE", Arity.RANGE)
def _fn_mode(rv: RangeValue) -> Number:
    """MODE(range): most frequent value; ties go to the smallest value."""
    values = rv.numbers("MODE")
    if not values:
        return math.nan
    counts = Counter(values)
    top = max(counts.values())
    return min(v for v, c in counts.items() if c == top)


@builtin("PERCENTILE", Arity.RANGE_SCALAR)
def _fn_percentile(rv: RangeValue, k: Value) -> float:
    values = rv.numbers("PERCENTILE")
    q = to_float(k, "PERCENTILE k")
    if not 0 <= q <= 1:
        raise FormulaDomainError(f"PERCENTILE: k must be in [0, 1], got {q!r}")
    _require(values, 1, "PERCENTILE")
    return _quantile(values, q)


@builtin("QUARTILE", Arity.RANGE_SCALAR)
def _fn_quartile(rv: RangeValue, quart: Value) -> float:
    values = rv.numbers("QUARTILE")
    q = to_float(quart, "QUARTILE quart")
    if not 0 <= q < 5:
        raise FormulaDomainError(f"QUARTILE: quart must be 0-4, got {q!r}")
    _require(values, 1, "QUARTILE")
    return _quantile(values, int(q) / 4)


def _kth(rv: RangeValue, k: Value, name: str, *, largest: bool) -> Number:
    values = sorted(rv.numbers(name), reverse=largest)
    pos = to_float(k, f"{name} k")
    if not 1 <= pos <= len(values):
        raise FormulaDomainError(f"{name}: k must be between 1 and {len(values)}, got {pos!r}")
    return values[math.ceil(pos) - 1]


@builtin("LARGE", Arity.RANGE_SCALAR)
def _fn_large(rv: RangeValue, k: Value) -> Number:
    return _kth(rv, k, "LARGE", largest=True)


@builtin("SMALL", Arity.RANGE_SCALAR)
def _fn_small(rv: RangeValue, k: Value) -> Number:
    return _kth(rv, k, "SMALL", largest=False)


# ---------- Dispersion and shape ----------


def _variance(rv: RangeValue, name: str, ddof: int) -> float:
    values = rv.numbers(name)
    _require(values, ddof + 1, name)
    return float(_series(values).var(ddof=ddof))


@builtin("VAR", Arity.RANGE)
def _fn_var(rv: RangeValue) -> float:
    """VAR(range): sample variance, divisor n - 1."""
    return _variance(rv, "VAR", 1)


@builtin("VARP", Arity.RANGE)
def _fn_varp(rv: RangeValue) -> float:
    """VARP(range): population variance, divisor n."""
    return _variance(rv, "VARP", 0)


@builtin("STDEV", Arity.RANGE)
def _fn_stdev(rv: RangeValue) -> float:
    return math.sqrt(_variance(rv, "STDEV", 1))


@builtin("STDEVP", Arity.RANGE)
def _fn_stdevp(rv: RangeValue) -> float:
    return math.sqrt(_variance(rv, "STDEVP", 0))


@builtin("SKEW", Arity.RANGE)
def _fn_skew(rv: RangeValue) -> float:
    """SKEW(range): adjusted Fisher-Pearson sample skewness."""
    values = rv.numbers("SKEW")
    _require(values, 3, "SKEW")
    result = _series(values).skew(bias=False)
    return math.nan if result is None else float(result)


@builtin("KURT", Arity.RANGE)
def _fn_kurt(rv: RangeValue) -> float:
    """KURT(range): sample excess kurtosis (a normal distribution gives 0)."""
    values = rv.numbers("KURT")
    _require(values, 4, "KURT")
    result = _series(values).kurtosis(fisher=True, bias=False)
    return math.nan if result is None else float(result)


# ---------- Two-range functions ----------


def _pairs(a: RangeValue, b: RangeValue, name: str) -> pl.DataFrame:
    """Cells paired by position; a pair is kept only when both sides are numeric."""
    # raises on the first error cell
    a.numbers(name)
    b.numbers(name)
    xs: list[float] = []
    ys: list[float] = []
    for x, y in zip(a.values, b.values):
        if is_number(x) and is_number(y):
            xs.append(float(x))
            ys.append(float(y))
    return pl.DataFrame({"x": xs, "y": ys}, schema={"x": pl.Float64, "y": pl.Float64})


def _covariance(df: pl.DataFrame) -> float:
    x, y = pl.col("x"), pl.col("y")
    return float(df.select(((x - x.mean()) * (y - y.mean())).mean()).item())


@builtin("CORREL", Arity.TWO_RANGES)
def _fn_correl(a: RangeValue, b: RangeValue) -> float:
    """CORREL(range1, range2): Pearson correlation coefficient."""
    df = _pairs(a, b, "CORREL")
    if df.height < 2:
        raise FormulaDomainError("CORREL needs at least 2 numeric pairs")
    result = df.select(pl.corr("x", "y")).item()
    return math.nan if result is None else float(result)


@builtin("COVAR", Arity.TWO_RANGES)
def _fn_covar(a: RangeValue, b: RangeValue) -> float:
    """COVAR(range1, range2): population covariance."""
    df = _pairs(a, b, "COVAR")
    if df.height < 1:
        raise FormulaDomainError("COVAR needs at least 1 numeric pair")
    return _covariance(df)


@builtin("SUMPRODUCT", Arity.TWO_RANGES)
def _fn_sumproduct(a: RangeValue, b: RangeValue) -> Number:
    a.numbers("SUMPRODUCT")
    b.numbers("SUMPRODUCT")
    total: Number = 0
    for x, y in zip(a.values, b.values):
        if is_number(x) and is_number(y):
            total += x * y
    return fit_int(total) if isinstance(total, int) else float(total)


def _slope_intercept(a: RangeValue, b: RangeValue, name: str) -> tuple[float, float]:
    """Least-squares fit of known_y (*a*) on known_x (*b*)."""
    df = _pairs(b, a, name)  # x from the second range, y from the first
    if df.height < 2:
        raise FormulaDomainError(f"{name} needs at least 2 numeric pairs")
    var_x = float(df.select(pl.col("x").var(ddof=0)).item())
    if var_x == 0:
        raise FormulaDomainError(f"{name}: known_x values have zero variance")
    slope = _covariance(df) / var_x
    means = df.select(pl.col("x").mean(), pl.col("y").mean()).row(0)
    return slope, float(means[1]) - slope * float(means[0])


@builtin("SLOPE", Arity.TWO_RANGES)
def _fn_slope(a: RangeValue, b: RangeValue) -> float:
    """SLOPE(known_y, known_x)."""
    return _slope_intercept(a, b, "SLOPE")[0]


@builtin("INTERCEPT", Arity.TWO_RANGES)
def _fn_intercept(a: RangeValue, b: RangeValue) -> float:
    """INTERCEPT(known_y, known_x)."""
    return _slope_intercept(a, b, "INTERCEPT")[1]


@builtin("RSQ", Arity.TWO_RANGES)
def _fn_rsq(a: RangeValue, b: RangeValue) -> float:
    r = _fn_correl(a, b)
    return r * r
