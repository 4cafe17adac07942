"""
Constraint Model Builder

Translates a ProblemDefinition into finite-domain variables and constraints.

Time convention: ``end`` is the last occupied time unit, so
``end = start + duration - 1`` and a task occupies every t with
``start <= t <= end``. The duration link, precedence and resource
constraints all use this convention.

Constraint families (imposed in this order):
1. Duration link per task: end = start + duration - 1
2. Makespan: makespan = max(end) + 1 (exclusive finish of the last task)
3. Precedence per declared relation (strict comparisons)
4. Resource capacity per discrete time unit covered by a window:
   occupancy indicator b, consumption c = demand * b, sum(c) <= capacity

Size: the resource family allocates 2 * tasks unknowns per covered time unit,
which dominates the model for long horizons. The CP-SAT backend
(app.engine.ortools_solver) uses a cumulative primitive instead.
"""

from dataclasses import dataclass
import logging
from typing import Dict, List, Sequence

from app.engine.constraints import MaxPlusC, Occupies, SumLeqC, XgtY, XmulCeqZ, XplusCeqZ
from app.engine.store import IntVar, Store
from app.models.constraints import PrecedenceSemantics, RelationConstraint, RelationType
from app.models.entities import ProblemDefinition, ResourceWindow, Task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskTiming:
    start: IntVar
    end: IntVar


@dataclass
class SchedulingModel:
    store: Store
    timings: List[TaskTiming]  # same order as problem.tasks
    makespan: IntVar
    horizon: int


def worst_case_horizon(tasks: Sequence[Task]) -> int:
    """Length of a fully serial schedule, an upper bound for every timing variable."""
    return sum(t.duration for t in tasks)


def allocate_timings(store: Store, tasks: Sequence[Task], horizon: int) -> List[TaskTiming]:
    timings = []
    for task in tasks:
        start = store.new_var(f"{task.name} start", 0, horizon)
        end = store.new_var(f"{task.name} end", 0, horizon)
        # Linked immediately so every later constraint reading `end` sees it.
        store.impose(XplusCeqZ(start, task.duration - 1, end))
        timings.append(TaskTiming(start, end))
    return timings


def capacity_profile(windows: Sequence[ResourceWindow], horizon: int) -> Dict[int, int]:
    """
    Map each time unit covered by a window (clipped to [0, horizon]) to its ceiling.

    Overlapping windows must all hold, so the strictest capacity wins.
    """
    profile: Dict[int, int] = {}
    for window in windows:
        for t in range(max(0, window.from_time), min(horizon, window.until_time) + 1):
            profile[t] = min(profile.get(t, window.capacity), window.capacity)
    return profile


def impose_precedence(
    store: Store,
    task: Task,
    relation: RelationConstraint,
    timings_by_id: Dict[str, TaskTiming],
    semantics: PrecedenceSemantics,
) -> None:
    source = timings_by_id[task.id]
    target = timings_by_id[relation.target_task_id]
    if relation.type == RelationType.AFTER:
        store.impose(XgtY(source.start, target.end))
    elif semantics == PrecedenceSemantics.LITERAL:
        store.impose(XgtY(source.end, target.start))
    else:
        store.impose(XgtY(target.start, source.end))


def impose_resource_constraints(
    store: Store,
    tasks: Sequence[Task],
    timings: Sequence[TaskTiming],
    windows: Sequence[ResourceWindow],
    horizon: int,
) -> int:
    """Post the per-unit capacity constraints. Returns the number of time units covered."""
    profile = capacity_profile(windows, horizon)
    total_demand = sum(t.resource_demand for t in tasks)
    for t in sorted(profile):
        consumption = []
        for task, timing in zip(tasks, timings):
            occupied = store.new_var(f"{task.name} occupies {t}", 0, 1)
            store.impose(Occupies(timing.start, timing.end, t, occupied))
            used = store.new_var(f"{task.name} consumption at {t}", 0, task.resource_demand)
            store.impose(XmulCeqZ(occupied, task.resource_demand, used))
            consumption.append(used)
        store.impose(SumLeqC(consumption, profile[t]))
    logger.debug(f"Resource profile covers {len(profile)} time units, total demand {total_demand}")
    return len(profile)


def build_model(
    problem: ProblemDefinition,
    semantics: PrecedenceSemantics = PrecedenceSemantics.INTUITIVE,
) -> SchedulingModel:
    """
    Build a fresh store holding the complete scheduling model.

    The problem must already have passed validate_problem(); a dangling
    relation here surfaces as KeyError.
    """
    store = Store()
    tasks = list(problem.tasks)
    horizon = worst_case_horizon(tasks)
    logger.debug(f"Worst case horizon: {horizon}")

    timings = allocate_timings(store, tasks, horizon)

    # exclusive finish, one past the latest possible end
    makespan = store.new_var("makespan", 0, horizon + 1 if timings else 0)
    if timings:
        store.impose(MaxPlusC([t.end for t in timings], 1, makespan))

    timings_by_id = {task.id: timing for task, timing in zip(tasks, timings)}
    for task in tasks:
        for relation in task.relations:
            impose_precedence(store, task, relation, timings_by_id, semantics)

    impose_resource_constraints(store, tasks, timings, problem.resource_windows, horizon)

    logger.debug(f"Model built: {len(store.vars)} variables, {len(store.constraints)} constraints")
    return SchedulingModel(store=store, timings=timings, makespan=makespan, horizon=horizon)
