import logging
import threading
import time
from typing import Optional, Tuple

from app.config.settings import get_settings
from app.engine.extractor import extract_solution
from app.engine.model_builder import build_model, worst_case_horizon
from app.engine.ortools_solver import solve_with_ortools
from app.engine.search import DepthFirstSearch
from app.engine.validation import validate_problem
from app.models.constraints import PrecedenceSemantics
from app.models.entities import ProblemDefinition, SearchMode, SolveResult

logger = logging.getLogger(__name__)


def select_solver(num_tasks: int, horizon: int, threshold: int) -> str:
    """
    Heuristic: choose solver based on model size.
    The per-unit encoding allocates one occupancy indicator per task and time unit,
    so large tasks x horizon products go to CP-SAT.
    """
    return "ortools" if num_tasks * horizon > threshold else "backtracking"


def solve_with_backtracking(
    problem: ProblemDefinition,
    mode: SearchMode = SearchMode.MINIMIZE_MAKESPAN,
    semantics: PrecedenceSemantics = PrecedenceSemantics.INTUITIVE,
    time_limit_seconds: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> SolveResult:
    """
    Solve with the native finite-domain engine.

    Each call builds its own store, so concurrent calls share no state.
    """
    t0 = time.monotonic()
    model = build_model(problem, semantics)
    store = model.store
    logger.info(f"Solving: {len(store.vars)} variables, {len(store.constraints)} constraints, horizon {model.horizon}")

    deadline = None if time_limit_seconds is None else t0 + time_limit_seconds
    cost = model.makespan if mode == SearchMode.MINIMIZE_MAKESPAN else None
    search = DepthFirstSearch(store, store.vars, cost=cost, deadline=deadline, cancel_event=cancel_event)
    outcome = search.labeling()
    elapsed = time.monotonic() - t0

    logger.info(
        f"Search finished: {outcome.status.value}, nodes={outcome.nodes}, fails={outcome.fails}, "
        f"solutions={outcome.solutions}, {elapsed:.3f}s"
    )

    if outcome.values is None:
        return SolveResult(
            status=outcome.status,
            solver_used="backtracking",
            nodes=outcome.nodes,
            solutions_found=outcome.solutions,
            elapsed_seconds=elapsed,
        )

    return SolveResult(
        status=outcome.status,
        solution=extract_solution(problem, model, outcome.values),
        makespan=outcome.values[model.makespan.index],
        solver_used="backtracking",
        nodes=outcome.nodes,
        solutions_found=outcome.solutions,
        elapsed_seconds=elapsed,
    )


def resolve_options(
    problem: ProblemDefinition,
    mode: Optional[SearchMode] = None,
    semantics: Optional[PrecedenceSemantics] = None,
    solver: Optional[str] = None,
) -> Tuple[SearchMode, PrecedenceSemantics, str]:
    """Fill unset options from settings and turn `auto` into a concrete backend."""
    settings = get_settings()
    mode = mode or settings.search_mode
    semantics = semantics or settings.precedence_semantics
    solver = solver or settings.solver_type
    if solver == "auto":
        solver = select_solver(len(problem.tasks), worst_case_horizon(problem.tasks), settings.auto_ortools_threshold)
    return mode, semantics, solver


def solve(
    problem: ProblemDefinition,
    mode: Optional[SearchMode] = None,
    semantics: Optional[PrecedenceSemantics] = None,
    solver: Optional[str] = None,
    time_limit_seconds: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> SolveResult:
    """
    Validate a problem and solve it with the configured solver.

    Unset options fall back to settings. Configuration errors raise before any
    variable is allocated; infeasible, cancelled and timed-out searches come
    back as a SolveResult status.

    Solver selection:
    - `backtracking`: native propagation + labeling engine
    - `ortools`: CP-SAT with cumulative resource constraints
    - `auto`: ortools once the per-unit model grows past
      settings.auto_ortools_threshold occupancy indicators
    """
    if time_limit_seconds is None:
        time_limit_seconds = get_settings().solver_time_limit_seconds

    validate_problem(problem)

    mode, semantics, solver = resolve_options(problem, mode, semantics, solver)
    logger.info(f"Solve request: {len(problem.tasks)} tasks, mode={mode.value}, semantics={semantics.value}, solver={solver}")

    if solver == "ortools":
        return solve_with_ortools(problem, mode, semantics, time_limit_seconds, cancel_event)
    if solver == "backtracking":
        return solve_with_backtracking(problem, mode, semantics, time_limit_seconds, cancel_event)
    raise ValueError(f"Unknown solver {solver!r}")
