"""
Depth-First Labeling Search with Branch and Bound

Labels the store's variables with backtracking, propagating after every
decision.

Heuristics:
- Variable selection: first unfixed variable in registration order
  (start/end of each task, then makespan, then resource unknowns)
- Value selection: smallest remaining value first; the alternative branch
  is x >= value + 1. Tasks therefore pack toward the earliest feasible slot.

Modes:
- Feasibility (cost=None): stop at the first complete assignment
- Optimisation (cost given): after each solution the cost upper bound is
  tightened to best - 1 and the search continues; when the tree is
  exhausted the last solution is optimal

The search is iterative (explicit choice-point stack), so depth is not bound
by the interpreter recursion limit. Cancellation and deadline are polled once
per node and unwind the store back to its root state.

Complexity: O(h^n) worst case for n tasks over horizon h. Propagation of the
precedence and resource constraints prunes most of it on realistic inputs.
"""

from dataclasses import dataclass
import logging
import threading
import time
from typing import List, Optional, Sequence, Tuple

from app.engine.store import Inconsistency, IntVar, Store
from app.models.entities import SolveStatus

logger = logging.getLogger(__name__)


@dataclass
class SearchOutcome:
    status: SolveStatus
    values: Optional[List[int]] = None  # indexed by IntVar.index
    cost: Optional[int] = None
    nodes: int = 0
    fails: int = 0
    solutions: int = 0


class DepthFirstSearch:
    def __init__(
        self,
        store: Store,
        variables: Sequence[IntVar],
        cost: Optional[IntVar] = None,
        deadline: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Args:
            store: Store holding the model, exclusively owned by this search
            variables: Decision variables in selection order
            cost: Variable to minimise, or None for feasibility only
            deadline: time.monotonic() value after which the search stops
            cancel_event: Set by the caller to abandon the search
        """
        self.store = store
        self.variables = list(variables)
        self.cost = cost
        self.deadline = deadline
        self.cancel_event = cancel_event
        self.nodes = 0
        self.fails = 0
        self.solutions = 0
        self._bound: Optional[int] = None

    def labeling(self) -> SearchOutcome:
        store = self.store
        root = store.mark()
        stack: List[Tuple[int, int, IntVar, int]] = []  # (trail mark, position, var, value)
        best: Optional[List[int]] = None
        best_cost: Optional[int] = None
        position = 0
        consistent = store.propagate()

        while True:
            interrupted = self._interrupted()
            if interrupted is not None:
                store.undo(root)
                if interrupted == SolveStatus.CANCELLED:
                    logger.info(f"Search cancelled after {self.nodes} nodes")
                    return self._outcome(SolveStatus.CANCELLED)
                logger.info(f"Search deadline reached after {self.nodes} nodes")
                if best is None:
                    return self._outcome(SolveStatus.TIMED_OUT)
                return self._outcome(SolveStatus.FEASIBLE, best, best_cost)

            self.nodes += 1
            if consistent:
                position, var = self._select(position)
                if var is None:
                    best = store.snapshot()
                    self.solutions += 1
                    if self.cost is None:
                        store.undo(root)
                        return self._outcome(SolveStatus.FEASIBLE, best)
                    best_cost = self.cost.value()
                    self._bound = best_cost - 1
                    logger.debug(f"Solution {self.solutions}: cost={best_cost}, nodes={self.nodes}")
                    consistent = False
                    continue
                value = var.min
                stack.append((store.mark(), position, var, value))
                consistent = self._apply(lambda: store.assign(var, value))
                continue

            if not stack:
                store.undo(root)
                if best is None:
                    logger.debug(f"Search space exhausted without solution, nodes={self.nodes}")
                    return self._outcome(SolveStatus.INFEASIBLE)
                return self._outcome(SolveStatus.OPTIMAL, best, best_cost)

            self.fails += 1
            mark, position, var, value = stack.pop()
            store.undo(mark)
            consistent = self._apply(lambda: store.set_min(var, value + 1))

    def _apply(self, decision) -> bool:
        """Apply a decision plus the current cost bound, then propagate."""
        try:
            decision()
            if self._bound is not None:
                self.store.set_max(self.cost, self._bound)
        except Inconsistency:
            return False
        return self.store.propagate()

    def _select(self, position: int) -> Tuple[int, Optional[IntVar]]:
        # Everything before `position` was fixed when this branch reached it.
        variables = self.variables
        while position < len(variables):
            var = variables[position]
            if not var.is_fixed:
                return position, var
            position += 1
        return position, None

    def _interrupted(self) -> Optional[SolveStatus]:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return SolveStatus.CANCELLED
        if self.deadline is not None and time.monotonic() >= self.deadline:
            return SolveStatus.TIMED_OUT
        return None

    def _outcome(self, status: SolveStatus, values=None, cost=None) -> SearchOutcome:
        return SearchOutcome(
            status=status,
            values=values,
            cost=cost,
            nodes=self.nodes,
            fails=self.fails,
            solutions=self.solutions,
        )
