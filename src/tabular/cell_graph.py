"""Memoized formula evaluation over a grid, with cycle detection.

One :class:`CellGraph` lives for exactly one recalculation pass.  It
parses every formula cell once, builds a :class:`ReferenceGraph` of which
formula cells read which other formula cells, marks every cell of a
cycle as failed up front, and then evaluates the rest in dependency
order.  A cell is computed at most once; reading it again returns the
cached value.

The in-progress set and evaluation stack remain as a guard for anything
the static graph does not see, and raise :class:`CellCycleError` with
the cycle path.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable

from tabular.formulas.errors import CellCycleError
from tabular.formulas.evaluator import evaluate_formula
from tabular.formulas.nodes import Node, extract_refs
from tabular.formulas.parser import parse_formula
from tabular.formulas.references import (
    Address,
    RangeRef,
    RangeValue,
    coerce_text,
    parse_address,
    resolve_range,
)
from tabular.formulas.values import ErrorValue, Value
from tabular.table import Grid

logger = logging.getLogger(__name__)

FORMULA_MARKER = "="


def is_formula(text: str) -> bool:
    return text.startswith(FORMULA_MARKER)


# ---------------------------------------------------------------------------
# ReferenceGraph
# ---------------------------------------------------------------------------


class ReferenceGraph:
    """Formula cell -> formula cells its formula reads.

    Only formula cells are nodes; a reference to a literal cell adds no
    edge, since literals cannot take part in a cycle.
    """

    def __init__(self) -> None:
        self.edges: dict[Address, set[Address]] = {}

    def add_cell(self, address: Address, reads: Iterable[Address] = ()) -> None:
        self.edges.setdefault(address, set()).update(reads)

    @classmethod
    def build(
        cls,
        parsed: dict[Address, Node | None],
        n_rows: int,
        n_cols: int,
        *,
        skip_header: bool = False,
    ) -> ReferenceGraph:
        """Build the graph from parsed formulas.

        Args:
            parsed: Every formula cell, mapped to its AST or ``None`` if
                it failed to parse.
            n_rows, n_cols: Current grid size, used to bound whole-row
                and whole-column references.
        """
        graph = cls()
        cells = list(parsed)
        for address, node in parsed.items():
            reads: set[Address] = set()
            if node is not None:
                for ref in extract_refs(node):
                    if isinstance(ref, Address):
                        if ref in parsed:
                            reads.add(ref)
                        continue
                    r0, c0, r1, c1 = ref.bounds(n_rows, n_cols, skip_header=skip_header)
                    reads.update(a for a in cells if r0 <= a.row <= r1 and c0 <= a.col <= c1)
            graph.add_cell(address, reads)
        return graph

    def strongly_connected(self) -> list[list[Address]]:
        """Strongly connected components (Tarjan), each sorted row-major."""
        index: dict[Address, int] = {}
        low: dict[Address, int] = {}
        stack: list[Address] = []
        on_stack: set[Address] = set()
        components: list[list[Address]] = []
        counter = 0

        for root in sorted(self.edges):
            if root in index:
                continue
            index[root] = low[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)
            work = [(root, iter(sorted(self.edges[root])))]
            while work:
                node, successors = work[-1]
                descended = False
                for nxt in successors:
                    if nxt not in index:
                        index[nxt] = low[nxt] = counter
                        counter += 1
                        stack.append(nxt)
                        on_stack.add(nxt)
                        work.append((nxt, iter(sorted(self.edges.get(nxt, ())))))
                        descended = True
                        break
                    if nxt in on_stack:
                        low[node] = min(low[node], index[nxt])
                if descended:
                    continue
                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[node])
                if low[node] == index[node]:
                    component: list[Address] = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    components.append(sorted(component))
        return components

    def cycles(self) -> list[list[Address]]:
        """Components of two or more cells, plus cells that read themselves."""
        found = [
            comp
            for comp in self.strongly_connected()
            if len(comp) > 1 or comp[0] in self.edges.get(comp[0], ())
        ]
        return sorted(found)

    def evaluation_order(self, settled: Iterable[Address] = ()) -> list[Address]:
        """Formula cells whose inputs are all acyclic, dependencies first (Kahn).

        Cells in a cycle, and every cell that depends on one, are left out.
        Cells in *settled* already have a value: they are left out too, and
        reading one does not hold back the reader.
        """
        done = set(settled)
        dependents: dict[Address, set[Address]] = {a: set() for a in self.edges}
        in_degree: dict[Address, int] = {}
        for cell, reads in self.edges.items():
            if cell in done:
                continue
            reads = reads - done
            in_degree[cell] = len(reads)
            for dep in reads:
                dependents.setdefault(dep, set()).add(cell)

        queue: deque[Address] = deque(sorted(c for c, d in in_degree.items() if d == 0))
        order: list[Address] = []
        while queue:
            cell = queue.popleft()
            order.append(cell)
            for dep in sorted(dependents.get(cell, ())):
                in_degree[dep] -= 1
                if in_degree[dep] == 0:
                    queue.append(dep)
        return order


# ---------------------------------------------------------------------------
# CellGraph
# ---------------------------------------------------------------------------


class CellGraph:
    """On-demand memoized evaluator for the formula cells of one grid.

    Usage::

        cg = CellGraph(grid)
        results = cg.evaluate_all()     # {Address: Value} for formula cells
        errors = cg.get_errors()        # {Address: ErrorValue}

    Parameters
    ----------
    grid : Grid
        The grid to read.  It is never written to.
    skip_header : bool
        Whole-column references start at row 2.
    """

    def __init__(self, grid: Grid, *, skip_header: bool = False) -> None:
        self._grid = grid
        self._skip_header = skip_header
        self._asts: dict[Address, Node] = {}
        self._cache: dict[Address, Value | None] = {}
        self._in_progress: set[Address] = set()
        self._eval_stack: list[Address] = []
        self._errors: dict[Address, ErrorValue] = {}
        self._cycles: list[list[Address]] = []

    # ------------------------------------------------------------------
    # CellResolver protocol implementation
    # ------------------------------------------------------------------

    def resolve_cell(self, address: Address) -> Value | None:
        """Resolve a cell value, triggering recursive evaluation if needed."""
        return self.evaluate_cell(address)

    def resolve_text(self, address: Address) -> Value | None:
        """Literal text of a plain cell; a formula cell is evaluated."""
        text = self._grid.raw_text(address.row, address.col)
        if is_formula(text):
            return self.evaluate_cell(address)
        return text if text.strip() else None

    def resolve_range(self, ref: RangeRef) -> RangeValue:
        """Resolve a range, evaluating any formula cells inside it first."""
        return resolve_range(
            self._grid, ref, skip_header=self._skip_header, read=self.evaluate_cell
        )

    # ------------------------------------------------------------------
    # Grid scan
    # ------------------------------------------------------------------

    def formula_cells(self) -> dict[Address, str]:
        """Every formula cell with its source text, row-major."""
        n_rows, n_cols = self._grid.cell_count()
        found: dict[Address, str] = {}
        for r in range(1, n_rows + 1):
            for c in range(1, n_cols + 1):
                text = self._grid.raw_text(r, c)
                if is_formula(text):
                    found[Address(r, c)] = text
        return found

    def _parsed(self, address: Address, text: str) -> Node | ErrorValue:
        """AST for a formula cell, parsed once per pass."""
        if address in self._asts:
            return self._asts[address]
        if address in self._errors:
            return self._errors[address]
        try:
            node = parse_formula(text)
        except Exception as exc:
            return self._fail(address, exc)
        self._asts[address] = node
        return node

    def reference_graph(self) -> ReferenceGraph:
        """Parse every formula cell and link those that read each other."""
        parsed: dict[Address, Node | None] = {}
        for address, text in self.formula_cells().items():
            node = self._parsed(address, text)
            parsed[address] = None if isinstance(node, ErrorValue) else node
        n_rows, n_cols = self._grid.cell_count()
        return ReferenceGraph.build(parsed, n_rows, n_cols, skip_header=self._skip_header)

    # ------------------------------------------------------------------
    # Core evaluation
    # ------------------------------------------------------------------

    def _fail(self, address: Address, exc: BaseException) -> ErrorValue:
        error = ErrorValue.from_exception(exc)
        logger.debug("cell %s failed: %s", address, error.message)
        self._errors[address] = error
        self._cache[address] = error
        return error

    def evaluate_cell(self, address: Address) -> Value | None:
        """Evaluate a single cell, with memoization and cycle detection.

        Returns:
            The computed value, an :class:`ErrorValue` if the formula
            failed, or ``None`` for an empty cell.

        Raises:
            CellCycleError: While unwinding a cycle found at run time,
                until the frame of the cell that closed the loop.
        """
        # Already computed?
        if address in self._cache:
            return self._cache[address]

        # Cycle detection
        if address in self._in_progress:
            cycle_start = self._eval_stack.index(address)
            cycle = self._eval_stack[cycle_start:]
            raise CellCycleError([str(a) for a in cycle + [address]])

        text = self._grid.raw_text(address.row, address.col)
        if not is_formula(text):
            value = coerce_text(text)
            self._cache[address] = value
            return value

        node = self._parsed(address, text)
        if isinstance(node, ErrorValue):
            return node

        self._in_progress.add(address)
        self._eval_stack.append(address)
        try:
            result = evaluate_formula(node, self)
        except CellCycleError as exc:
            error = self._fail(address, exc)
            if exc.cycle_path[0] != str(address):
                raise
            self._cycles.append(sorted(parse_address(p) for p in set(exc.cycle_path)))
            return error
        except RecursionError:
            raise
        except Exception as exc:
            return self._fail(address, exc)
        finally:
            self._in_progress.discard(address)
            if self._eval_stack and self._eval_stack[-1] == address:
                self._eval_stack.pop()
        self._cache[address] = result
        return result

    def prepare(self) -> None:
        """Fail every cycle, then evaluate all other formula cells in dependency order.

        Afterwards every formula cell is cached, so reading any cell
        recurses at most one level however long its chain of references.
        """
        graph = self.reference_graph()
        settled: set[Address] = set()
        for cycle in graph.cycles():
            self._cycles.append(cycle)
            exc = CellCycleError([str(a) for a in cycle + [cycle[0]]])
            for address in cycle:
                self._fail(address, exc)
            settled.update(cycle)

        for address in graph.evaluation_order(settled):
            self.evaluate_cell(address)

    def evaluate_all(self) -> dict[Address, Value]:
        """Evaluate every formula cell of the grid.

        Returns:
            Dict of address -> computed value for formula cells, row-major.
        """
        self.prepare()
        formulas = self.formula_cells()
        for address in formulas:
            self.evaluate_cell(address)
        return {address: self._cache[address] for address in formulas}

    @property
    def cycles(self) -> list[list[Address]]:
        """Cycles found so far, each as a row-major list of addresses."""
        return list(self._cycles)

    def get_errors(self) -> dict[Address, ErrorValue]:
        """Return all evaluation errors collected during this pass."""
        return dict(self._errors)

    def invalidate(self) -> None:
        """Clear all cached values and errors.

        Call this when cells have been edited and need re-evaluation.
        """
        self._asts.clear()
        self._cache.clear()
        self._in_progress.clear()
        self._eval_stack.clear()
        self._errors.clear()
        self._cycles.clear()
