import threading

import pytest
from app.engine.ortools_solver import solve_with_ortools
from app.engine.scheduler import select_solver, solve, solve_with_backtracking
from app.models.constraints import PrecedenceSemantics
from app.models.entities import ProblemDefinition, ResourceWindow, SearchMode, SolveStatus, Task
from app.utils.benchmarking import benchmark_solvers
from app.utils.scoring import find_violations
from tests.conftest import after, before


def starts(result):
    return {t.name: t.start for t in result.solution.tasks}


class TestBacktrackingSolver:
    """Unit tests for the native propagation + labeling engine."""

    def test_serial_tasks_pack_earliest(self, serial_problem):
        """A BEFORE B on a unit resource: A at 0, B right after A's last unit."""
        result = solve_with_backtracking(serial_problem)

        assert result.status == SolveStatus.OPTIMAL
        assert starts(result) == {"A": 0, "B": 3}
        assert result.makespan == 5
        assert find_violations(serial_problem, result.solution) == []

    def test_full_parallelism_starts_everything_at_zero(self, parallel_problem):
        """Enough capacity and no relations: makespan is the longest duration."""
        result = solve_with_backtracking(parallel_problem)

        assert result.is_success
        assert all(t.start == 0 for t in result.solution.tasks)
        assert result.makespan == max(t.duration for t in parallel_problem.tasks)

    def test_unit_capacity_serialises_tasks(self, contended_problem):
        """Three 2-unit tasks on capacity 1 never overlap and finish at 6."""
        result = solve_with_backtracking(contended_problem)

        assert result.status == SolveStatus.OPTIMAL
        assert sorted(t.start for t in result.solution.tasks) == [0, 2, 4]
        assert result.makespan == 6
        assert find_violations(contended_problem, result.solution) == []

    def test_project_reaches_optimal_makespan(self, project_problem):
        """Relations plus a capacity step at t=4."""
        result = solve_with_backtracking(project_problem)

        assert result.status == SolveStatus.OPTIMAL
        assert result.makespan == 7
        assert find_violations(project_problem, result.solution) == []

    def test_solution_preserves_input_order(self, project_problem):
        result = solve_with_backtracking(project_problem)

        assert [t.name for t in result.solution.tasks] == [t.name for t in project_problem.tasks]
        assert [t.duration for t in result.solution.tasks] == [t.duration for t in project_problem.tasks]

    def test_infeasible_reports_status(self, infeasible_problem):
        """Infeasibility is a result value, not an exception."""
        result = solve_with_backtracking(infeasible_problem)

        assert result.status == SolveStatus.INFEASIBLE
        assert result.solution is None
        assert not result.is_success

    def test_feasibility_mode_stops_at_first_solution(self, contended_problem):
        result = solve_with_backtracking(contended_problem, mode=SearchMode.FEASIBILITY)

        assert result.status == SolveStatus.FEASIBLE
        assert result.solutions_found == 1
        assert find_violations(contended_problem, result.solution) == []

    def test_resolving_is_deterministic(self, project_problem):
        """Same problem, same variable and value order: identical solution."""
        first = solve_with_backtracking(project_problem)
        second = solve_with_backtracking(project_problem)

        assert first.solution == second.solution
        assert first.makespan == second.makespan

    def test_after_relation(self):
        """AFTER: the task starts strictly after the target's last unit."""
        problem = ProblemDefinition(
            resource_windows=(),
            tasks=(
                Task(id="deploy", name="Deploy", duration=1, relations=(after("build"),)),
                Task(id="build", name="Build", duration=4),
            ),
        )
        result = solve_with_backtracking(problem)

        assert starts(result) == {"Deploy": 4, "Build": 0}
        assert result.makespan == 5

    def test_zero_demand_ignores_capacity(self):
        problem = ProblemDefinition(
            resource_windows=(ResourceWindow(from_time=0, until_time=10, capacity=0),),
            tasks=(
                Task(id="a", name="A", duration=2),
                Task(id="b", name="B", duration=3),
            ),
        )
        result = solve_with_backtracking(problem)

        assert starts(result) == {"A": 0, "B": 0}

    def test_zero_capacity_window_pushes_task_later(self):
        """Units 0..1 allow nothing, so a demanding task starts at 2."""
        problem = ProblemDefinition(
            resource_windows=(
                ResourceWindow(from_time=0, until_time=1, capacity=0),
                ResourceWindow(from_time=2, until_time=10, capacity=1),
            ),
            tasks=(
                Task(id="a", name="A", duration=2, resource_demand=1),
                Task(id="b", name="B", duration=1),
            ),
        )
        result = solve_with_backtracking(problem)

        assert starts(result) == {"A": 2, "B": 0}
        assert result.makespan == 4

    def test_overlapping_windows_strictest_wins(self):
        problem = ProblemDefinition(
            resource_windows=(
                ResourceWindow(from_time=0, until_time=10, capacity=5),
                ResourceWindow(from_time=0, until_time=10, capacity=1),
            ),
            tasks=(
                Task(id="a", name="A", duration=2, resource_demand=1),
                Task(id="b", name="B", duration=2, resource_demand=1),
            ),
        )
        result = solve_with_backtracking(problem)

        assert sorted(starts(result).values()) == [0, 2]

    def test_empty_problem(self):
        result = solve_with_backtracking(ProblemDefinition(resource_windows=(), tasks=()))

        assert result.is_success
        assert result.solution.tasks == ()
        assert result.makespan == 0


class TestPrecedenceSemantics:
    """BEFORE is encoded differently depending on the chosen semantics."""

    def problem(self):
        return ProblemDefinition(
            resource_windows=(),
            tasks=(
                Task(id="a", name="A", duration=3, relations=(before("b"),)),
                Task(id="b", name="B", duration=2),
            ),
        )

    def test_intuitive_before_finishes_first(self):
        result = solve_with_backtracking(self.problem(), semantics=PrecedenceSemantics.INTUITIVE)
        a, b = result.solution.tasks

        assert b.start > a.start + a.duration - 1
        assert result.makespan == 5

    def test_literal_before_allows_overlap(self):
        """Literal encoding: A's last unit is after B's start."""
        result = solve_with_backtracking(self.problem(), semantics=PrecedenceSemantics.LITERAL)
        a, b = result.solution.tasks

        assert a.start + a.duration - 1 > b.start
        assert starts(result) == {"A": 0, "B": 0}
        assert result.makespan == 3

    def test_literal_mutual_before_forces_overlap(self):
        """A BEFORE B and B BEFORE A literally means the two tasks overlap."""
        tasks = (
            Task(id="a", name="A", duration=5, resource_demand=2, relations=(before("b"),)),
            Task(id="b", name="B", duration=5, resource_demand=2, relations=(before("a"),)),
        )
        tight = ProblemDefinition(resource_windows=(ResourceWindow(0, 10, 3),), tasks=tasks)
        loose = ProblemDefinition(resource_windows=(ResourceWindow(0, 10, 4),), tasks=tasks)

        assert solve_with_backtracking(tight, semantics=PrecedenceSemantics.LITERAL).status == SolveStatus.INFEASIBLE
        result = solve_with_backtracking(loose, semantics=PrecedenceSemantics.LITERAL)
        assert result.is_success
        assert find_violations(loose, result.solution, PrecedenceSemantics.LITERAL) == []

    def test_intuitive_cycle_is_infeasible(self):
        problem = ProblemDefinition(
            resource_windows=(),
            tasks=(
                Task(id="a", name="A", duration=1, relations=(before("b"),)),
                Task(id="b", name="B", duration=1, relations=(before("a"),)),
            ),
        )
        assert solve_with_backtracking(problem).status == SolveStatus.INFEASIBLE


class TestSearchInterruption:
    def test_cancelled_before_start(self, project_problem):
        cancel = threading.Event()
        cancel.set()
        result = solve_with_backtracking(project_problem, cancel_event=cancel)

        assert result.status == SolveStatus.CANCELLED
        assert result.solution is None

    def test_zero_time_limit_times_out(self, project_problem):
        result = solve_with_backtracking(project_problem, time_limit_seconds=0)

        assert result.status == SolveStatus.TIMED_OUT
        assert result.solution is None

    def test_cancel_during_search(self, crew_problem):
        """The event is polled once per node, so a search already under way stops."""
        cancel = threading.Event()
        timer = threading.Timer(0.5, cancel.set)
        timer.start()
        try:
            result = solve_with_backtracking(crew_problem, time_limit_seconds=60, cancel_event=cancel)
        finally:
            timer.cancel()

        assert result.status == SolveStatus.CANCELLED
        assert result.solution is None
        assert result.nodes > 0
        assert result.elapsed_seconds < 60

    def test_deadline_keeps_best_schedule(self, crew_problem):
        """Proving 23 optimal takes far longer than a second; the incumbent is returned."""
        result = solve_with_backtracking(crew_problem, time_limit_seconds=1)

        assert result.status == SolveStatus.FEASIBLE
        assert result.solutions_found >= 1
        assert result.makespan == 23
        assert find_violations(crew_problem, result.solution) == []


class TestORToolsSolver:
    """Unit tests for the CP-SAT backend."""

    def test_serial_tasks(self, serial_problem):
        result = solve_with_ortools(serial_problem, time_limit_seconds=5)

        assert result.status == SolveStatus.OPTIMAL
        assert starts(result) == {"A": 0, "B": 3}
        assert result.makespan == 5

    def test_infeasible(self, infeasible_problem):
        result = solve_with_ortools(infeasible_problem, time_limit_seconds=5)

        assert result.status == SolveStatus.INFEASIBLE
        assert result.solution is None

    def test_feasibility_mode(self, contended_problem):
        result = solve_with_ortools(contended_problem, mode=SearchMode.FEASIBILITY, time_limit_seconds=5)

        assert result.status == SolveStatus.FEASIBLE
        assert find_violations(contended_problem, result.solution) == []

    def test_cancelled(self, project_problem):
        cancel = threading.Event()
        cancel.set()
        result = solve_with_ortools(project_problem, time_limit_seconds=5, cancel_event=cancel)

        assert result.status == SolveStatus.CANCELLED


class TestSolverComparison:
    """The cumulative encoding must agree with the per-unit encoding."""

    @pytest.mark.parametrize("fixture_name", ["serial_problem", "parallel_problem", "contended_problem", "project_problem"])
    def test_same_optimal_makespan(self, fixture_name, request):
        problem = request.getfixturevalue(fixture_name)

        bt_result = solve_with_backtracking(problem)
        ort_result = solve_with_ortools(problem, time_limit_seconds=5)

        assert bt_result.status == ort_result.status == SolveStatus.OPTIMAL
        assert bt_result.makespan == ort_result.makespan
        assert find_violations(problem, ort_result.solution) == []

    def test_both_agree_on_infeasibility(self, infeasible_problem):
        assert solve_with_backtracking(infeasible_problem).status == SolveStatus.INFEASIBLE
        assert solve_with_ortools(infeasible_problem, time_limit_seconds=5).status == SolveStatus.INFEASIBLE

    def test_literal_semantics_agree(self):
        problem = ProblemDefinition(
            resource_windows=(ResourceWindow(0, 10, 1),),
            tasks=(
                Task(id="a", name="A", duration=3, resource_demand=1, relations=(before("b"),)),
                Task(id="b", name="B", duration=2),
            ),
        )
        bt_result = solve_with_backtracking(problem, semantics=PrecedenceSemantics.LITERAL)
        ort_result = solve_with_ortools(problem, semantics=PrecedenceSemantics.LITERAL, time_limit_seconds=5)

        assert bt_result.makespan == ort_result.makespan == 3


class TestSolveFacade:
    def test_explicit_solver_choice(self, serial_problem):
        assert solve(serial_problem, solver="backtracking").solver_used == "backtracking"
        assert solve(serial_problem, solver="ortools").solver_used == "ortools"

    def test_unknown_solver_rejected(self, serial_problem):
        with pytest.raises(ValueError):
            solve(serial_problem, solver="simplex")

    def test_auto_selection_by_model_size(self):
        assert select_solver(num_tasks=3, horizon=10, threshold=200) == "backtracking"
        assert select_solver(num_tasks=10, horizon=23, threshold=200) == "ortools"

    def test_auto_sends_larger_models_to_ortools(self, crew_problem):
        """Ten tasks over a 23-unit horizon is past what the native engine proves quickly."""
        result = solve(crew_problem, solver="auto", time_limit_seconds=10)

        assert result.solver_used == "ortools"
        assert result.status == SolveStatus.OPTIMAL
        assert result.makespan == 23
        assert find_violations(crew_problem, result.solution) == []

    def test_auto_keeps_small_models_native(self, project_problem):
        result = solve(project_problem, solver="auto")

        assert result.solver_used == "backtracking"
        assert result.status == SolveStatus.OPTIMAL


class TestBenchmarking:
    def test_both_backends_checked_for_violations(self, project_problem):
        results = benchmark_solvers(project_problem, time_limit_seconds=5)

        assert [r.solver_name for r in results] == ["backtracking", "ortools"]
        assert all(r.success and r.violations == 0 for r in results)
        assert {r.makespan for r in results} == {7}

    def test_failed_run_has_nothing_to_check(self, infeasible_problem):
        results = benchmark_solvers(infeasible_problem, time_limit_seconds=5)

        assert [r.status for r in results] == ["infeasible", "infeasible"]
        assert all(r.violations == 0 and r.makespan is None for r in results)
