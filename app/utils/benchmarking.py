import time
from typing import List, Optional
from dataclasses import dataclass

from app.engine.ortools_solver import solve_with_ortools
from app.engine.scheduler import solve_with_backtracking
from app.engine.validation import validate_problem
from app.models.constraints import PrecedenceSemantics
from app.models.entities import ProblemDefinition, SearchMode, SolveResult
from app.utils.scoring import find_violations


@dataclass
class BenchmarkResult:
    solver_name: str
    time_seconds: float
    makespan: Optional[int]
    success: bool
    num_tasks: int
    status: str
    violations: int = 0


def _entry(
    solver_name: str,
    elapsed: float,
    result: SolveResult,
    problem: ProblemDefinition,
    semantics: PrecedenceSemantics,
) -> BenchmarkResult:
    # Each returned schedule is re-checked independently of the solver that produced it
    violations = find_violations(problem, result.solution, semantics) if result.solution is not None else []
    return BenchmarkResult(
        solver_name=solver_name,
        time_seconds=elapsed,
        makespan=result.makespan,
        success=result.is_success,
        num_tasks=len(problem.tasks),
        status=result.status.value,
        violations=len(violations),
    )


def benchmark_solvers(
    problem: ProblemDefinition,
    mode: SearchMode = SearchMode.MINIMIZE_MAKESPAN,
    semantics: PrecedenceSemantics = PrecedenceSemantics.INTUITIVE,
    time_limit_seconds: float = 10,
) -> List[BenchmarkResult]:
    """
    Compare the native backtracking engine and OR-Tools on the same instance.
    Returns list of BenchmarkResult.
    """
    validate_problem(problem)
    results = []

    # Backtracking
    start = time.time()
    bt_result = solve_with_backtracking(problem, mode, semantics, time_limit_seconds)
    results.append(_entry("backtracking", time.time() - start, bt_result, problem, semantics))

    # OR-Tools
    start = time.time()
    ort_result = solve_with_ortools(problem, mode, semantics, time_limit_seconds)
    results.append(_entry("ortools", time.time() - start, ort_result, problem, semantics))

    return results
