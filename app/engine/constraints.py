"""
Bounds-consistency propagators over IntVar.

Each constraint exposes ``variables`` (used by the store to subscribe it) and
``propagate(store)``, which narrows bounds through the store and lets
``Inconsistency`` escape when a domain empties. Propagators are idempotent
enough to be re-run whenever one of their variables changes.
"""

from typing import Sequence

from app.engine.store import Inconsistency, IntVar, Store


class Constraint:
    variables: Sequence[IntVar] = ()
    queued: bool = False

    def propagate(self, store: Store) -> None:
        raise NotImplementedError

    def is_satisfied(self) -> bool:
        """Check the constraint on fixed variables."""
        raise NotImplementedError


class XplusCeqZ(Constraint):
    """z = x + c"""

    def __init__(self, x: IntVar, c: int, z: IntVar):
        self.x, self.c, self.z = x, c, z
        self.variables = (x, z)

    def propagate(self, store: Store) -> None:
        x, c, z = self.x, self.c, self.z
        store.set_min(z, x.min + c)
        store.set_max(z, x.max + c)
        store.set_min(x, z.min - c)
        store.set_max(x, z.max - c)

    def is_satisfied(self) -> bool:
        return self.z.value() == self.x.value() + self.c


class XgtY(Constraint):
    """x > y"""

    def __init__(self, x: IntVar, y: IntVar):
        self.x, self.y = x, y
        self.variables = (x, y)

    def propagate(self, store: Store) -> None:
        store.set_min(self.x, self.y.min + 1)
        store.set_max(self.y, self.x.max - 1)

    def is_satisfied(self) -> bool:
        return self.x.value() > self.y.value()


class XgteqY(Constraint):
    """x >= y"""

    def __init__(self, x: IntVar, y: IntVar):
        self.x, self.y = x, y
        self.variables = (x, y)

    def propagate(self, store: Store) -> None:
        store.set_min(self.x, self.y.min)
        store.set_max(self.y, self.x.max)

    def is_satisfied(self) -> bool:
        return self.x.value() >= self.y.value()


class MaxPlusC(Constraint):
    """z = max(xs) + c"""

    def __init__(self, xs: Sequence[IntVar], c: int, z: IntVar):
        self.xs = tuple(xs)
        self.c = c
        self.z = z
        self.variables = self.xs + (z,)

    def propagate(self, store: Store) -> None:
        xs, c, z = self.xs, self.c, self.z
        if not xs:
            store.assign(z, c)
            return
        store.set_min(z, max(x.min for x in xs) + c)
        store.set_max(z, max(x.max for x in xs) + c)

        ceiling = z.max - c
        for x in xs:
            store.set_max(x, ceiling)

        # If a single x can still reach the lower bound of z, it must.
        floor = z.min - c
        supports = [x for x in xs if x.max >= floor]
        if not supports:
            raise Inconsistency(z.label)
        if len(supports) == 1:
            store.set_min(supports[0], floor)

    def is_satisfied(self) -> bool:
        if not self.xs:
            return self.z.value() == self.c
        return self.z.value() == max(x.value() for x in self.xs) + self.c


class Occupies(Constraint):
    """b = 1 <=> (start <= t and end >= t), b in {0, 1}.

    ``end`` is the last occupied time unit, so this reads "the task occupies t".
    """

    def __init__(self, start: IntVar, end: IntVar, t: int, b: IntVar):
        self.start, self.end, self.t, self.b = start, end, t, b
        self.variables = (start, end, b)

    def propagate(self, store: Store) -> None:
        start, end, t, b = self.start, self.end, self.t, self.b
        if b.min == 1:
            store.set_max(start, t)
            store.set_min(end, t)
        elif b.max == 0:
            if start.max <= t:
                store.set_max(end, t - 1)
            if end.min >= t:
                store.set_min(start, t + 1)
        elif start.max <= t and end.min >= t:
            store.assign(b, 1)
        elif start.min > t or end.max < t:
            store.assign(b, 0)

    def is_satisfied(self) -> bool:
        occupied = self.start.value() <= self.t <= self.end.value()
        return self.b.value() == int(occupied)


class XmulCeqZ(Constraint):
    """z = c * b, b in {0, 1}, c >= 0"""

    def __init__(self, b: IntVar, c: int, z: IntVar):
        self.b, self.c, self.z = b, c, z
        self.variables = (b, z)

    def propagate(self, store: Store) -> None:
        b, c, z = self.b, self.c, self.z
        if c == 0:
            store.assign(z, 0)
            return
        store.set_min(z, c * b.min)
        store.set_max(z, c * b.max)
        if z.max < c:
            store.assign(b, 0)
        elif z.min > 0:
            store.assign(b, 1)
        # z only takes the values 0 and c
        if b.is_fixed:
            store.assign(z, c * b.min)

    def is_satisfied(self) -> bool:
        return self.z.value() == self.c * self.b.value()


class SumLeqC(Constraint):
    """sum(xs) <= c"""

    def __init__(self, xs: Sequence[IntVar], c: int):
        self.xs = tuple(xs)
        self.c = c
        self.variables = self.xs

    def propagate(self, store: Store) -> None:
        total_min = sum(x.min for x in self.xs)
        if total_min > self.c:
            raise Inconsistency(f"sum <= {self.c}")
        slack = self.c - total_min
        for x in self.xs:
            store.set_max(x, x.min + slack)

    def is_satisfied(self) -> bool:
        return sum(x.value() for x in self.xs) <= self.c
