import logging
import threading
import time
from typing import Optional

from ortools.sat.python import cp_model

from app.engine.model_builder import worst_case_horizon
from app.models.constraints import PrecedenceSemantics, RelationType
from app.models.entities import ProblemDefinition, ScheduledTask, SearchMode, Solution, SolveResult, SolveStatus
from app.models.errors import InternalInvariantError

logger = logging.getLogger(__name__)


def solve_with_ortools(
    problem: ProblemDefinition,
    mode: SearchMode = SearchMode.MINIMIZE_MAKESPAN,
    semantics: PrecedenceSemantics = PrecedenceSemantics.INTUITIVE,
    time_limit_seconds: float = 10,
    cancel_event: Optional[threading.Event] = None,
) -> SolveResult:
    """
    Solve the scheduling problem with Google OR-Tools CP-SAT.

    Same semantics as the per-unit model in app.engine.model_builder, but the
    capacity ceilings use one cumulative constraint per resource window
    instead of an indicator per time unit. Outside its window a ceiling must
    not bind, so each cumulative gets a fixed blocker interval over the window:
    with K = max(capacity, total demand) and blocker demand K - capacity, the
    tasks may use at most `capacity` inside the window and are unconstrained
    outside it. A window spanning the whole horizon needs no blocker.
    """
    t0 = time.monotonic()
    model = cp_model.CpModel()
    tasks = list(problem.tasks)
    horizon = worst_case_horizon(tasks)

    # end is the last occupied unit: end = start + duration - 1
    task_vars = {}
    for task in tasks:
        start_var = model.new_int_var(0, horizon, f"{task.name} start")
        end_var = model.new_int_var(0, horizon, f"{task.name} end")
        model.add(end_var == start_var + task.duration - 1)
        interval = model.new_fixed_size_interval_var(start_var, task.duration, f"{task.name} interval")
        task_vars[task.id] = {"start": start_var, "end": end_var, "interval": interval, "task": task}

    makespan = model.new_int_var(0, horizon + 1, "makespan")
    if tasks:
        last_end = model.new_int_var(0, horizon, "last task end")
        model.add_max_equality(last_end, [v["end"] for v in task_vars.values()])
        model.add(makespan == last_end + 1)
    else:
        model.add(makespan == 0)

    # Precedence relations, strict comparisons
    for task in tasks:
        source = task_vars[task.id]
        for relation in task.relations:
            target = task_vars[relation.target_task_id]
            if relation.type == RelationType.AFTER:
                model.add(source["start"] >= target["end"] + 1)
            elif semantics == PrecedenceSemantics.LITERAL:
                model.add(source["end"] >= target["start"] + 1)
            else:
                model.add(target["start"] >= source["end"] + 1)

    # Capacity ceilings, one cumulative per window
    total_demand = sum(t.resource_demand for t in tasks)
    intervals = [v["interval"] for v in task_vars.values()]
    demands = [v["task"].resource_demand for v in task_vars.values()]
    for i, window in enumerate(problem.resource_windows):
        window_from = max(0, window.from_time)
        window_until = min(horizon, window.until_time)
        if window_from > window_until:
            continue
        if window_from == 0 and window_until == horizon:
            # every interval lies inside [0, horizon]
            model.add_cumulative(intervals, demands, window.capacity)
            continue
        ceiling = max(window.capacity, total_demand)
        blocker_demand = ceiling - window.capacity
        if blocker_demand == 0:
            continue  # capacity never binds
        blocker = model.new_fixed_size_interval_var(
            window_from, window_until - window_from + 1, f"window {i} blocker"
        )
        model.add_cumulative(intervals + [blocker], demands + [blocker_demand], ceiling)

    if mode == SearchMode.MINIMIZE_MAKESPAN:
        model.minimize(makespan)

    solver = cp_model.CpSolver()
    solver.parameters.max_time_in_seconds = time_limit_seconds
    solver.parameters.num_workers = 1  # reproducible results
    solver.parameters.log_search_progress = False

    done = threading.Event()
    watcher = None
    if cancel_event is not None:
        def watch():
            while not done.is_set():
                if cancel_event.wait(0.05):
                    solver.stop_search()
                    return

        watcher = threading.Thread(target=watch, daemon=True)
        watcher.start()

    try:
        status = solver.solve(model)
    finally:
        done.set()
        if watcher is not None:
            watcher.join()

    elapsed = time.monotonic() - t0
    logger.info(f"CP-SAT finished: {solver.status_name(status)} in {elapsed:.3f}s")

    if status == cp_model.MODEL_INVALID:
        raise InternalInvariantError(f"CP-SAT rejected the model: {model.validate()}")
    if cancel_event is not None and cancel_event.is_set():
        return SolveResult(status=SolveStatus.CANCELLED, solver_used="ortools", elapsed_seconds=elapsed)
    if status == cp_model.INFEASIBLE:
        return SolveResult(status=SolveStatus.INFEASIBLE, solver_used="ortools", elapsed_seconds=elapsed)
    if status not in (cp_model.OPTIMAL, cp_model.FEASIBLE):
        return SolveResult(status=SolveStatus.TIMED_OUT, solver_used="ortools", elapsed_seconds=elapsed)

    if status == cp_model.OPTIMAL and mode == SearchMode.MINIMIZE_MAKESPAN:
        result_status = SolveStatus.OPTIMAL
    else:
        result_status = SolveStatus.FEASIBLE

    solution = Solution(
        tasks=tuple(
            ScheduledTask(name=task.name, start=int(solver.value(task_vars[task.id]["start"])), duration=task.duration)
            for task in tasks
        )
    )
    return SolveResult(
        status=result_status,
        solution=solution,
        makespan=int(solver.value(makespan)),
        solver_used="ortools",
        nodes=int(solver.num_branches),
        solutions_found=1,
        elapsed_seconds=elapsed,
    )
