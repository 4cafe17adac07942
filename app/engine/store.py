"""
Finite-Domain Constraint Store

Holds the bounded integer variables and constraints of one solving session,
together with the trail needed to undo bound changes on backtracking.

Domains are kept as closed intervals [min, max]. Every propagator in
app.engine.constraints reasons on bounds only, so interval domains lose no
pruning power for this model.

A Store is created fresh for every solve and owned by exactly one search.
It is never shared between requests.
"""

from collections import deque
from typing import Deque, List, Tuple

from app.models.errors import InternalInvariantError


class Inconsistency(Exception):
    """Raised internally when a variable domain becomes empty."""


class IntVar:
    """Bounded integer unknown with an immutable diagnostic label."""

    __slots__ = ("store", "index", "label", "min", "max", "constraints")

    def __init__(self, store: "Store", index: int, label: str, min_value: int, max_value: int):
        self.store = store
        self.index = index
        self.label = label
        self.min = min_value
        self.max = max_value
        self.constraints: List = []

    @property
    def is_fixed(self) -> bool:
        return self.min == self.max

    def value(self) -> int:
        if not self.is_fixed:
            raise InternalInvariantError(f"variable {self.label!r} is not fixed: {self.min}..{self.max}")
        return self.min

    def __repr__(self) -> str:
        if self.is_fixed:
            return f"{self.label} = {self.min}"
        return f"{self.label}::{{{self.min}..{self.max}}}"


class Store:
    def __init__(self):
        self.vars: List[IntVar] = []
        self.constraints: List = []
        self._trail: List[Tuple[IntVar, int, int]] = []
        self._queue: Deque = deque()

    def new_var(self, label: str, min_value: int, max_value: int) -> IntVar:
        """Allocate a variable and register it in the flat search order."""
        if min_value > max_value:
            raise InternalInvariantError(f"empty initial domain for {label!r}: {min_value}..{max_value}")
        var = IntVar(self, len(self.vars), label, min_value, max_value)
        self.vars.append(var)
        return var

    def impose(self, constraint) -> None:
        for var in constraint.variables:
            if var.store is not self:
                raise InternalInvariantError(
                    f"{type(constraint).__name__} references variable {var.label!r} from another store"
                )
            var.constraints.append(constraint)
        self.constraints.append(constraint)
        self._enqueue(constraint)

    # Bound updates. Each change is trailed and wakes the watching constraints.

    def set_min(self, var: IntVar, value: int) -> None:
        if value <= var.min:
            return
        if value > var.max:
            raise Inconsistency(var.label)
        self._trail.append((var, var.min, var.max))
        var.min = value
        self._wake(var)

    def set_max(self, var: IntVar, value: int) -> None:
        if value >= var.max:
            return
        if value < var.min:
            raise Inconsistency(var.label)
        self._trail.append((var, var.min, var.max))
        var.max = value
        self._wake(var)

    def assign(self, var: IntVar, value: int) -> None:
        self.set_min(var, value)
        self.set_max(var, value)

    def propagate(self) -> bool:
        """Run queued constraints to a fixpoint. Returns False on a domain wipe-out."""
        try:
            while self._queue:
                constraint = self._queue.popleft()
                constraint.queued = False
                constraint.propagate(self)
        except Inconsistency:
            self._clear_queue()
            return False
        return True

    def mark(self) -> int:
        return len(self._trail)

    def undo(self, mark: int) -> None:
        """Restore every domain to its state at ``mark``."""
        self._clear_queue()
        trail = self._trail
        while len(trail) > mark:
            var, old_min, old_max = trail.pop()
            var.min = old_min
            var.max = old_max

    def snapshot(self) -> List[int]:
        return [var.min for var in self.vars]

    def _wake(self, var: IntVar) -> None:
        for constraint in var.constraints:
            self._enqueue(constraint)

    def _enqueue(self, constraint) -> None:
        if not constraint.queued:
            constraint.queued = True
            self._queue.append(constraint)

    def _clear_queue(self) -> None:
        for constraint in self._queue:
            constraint.queued = False
        self._queue.clear()
