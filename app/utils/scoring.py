from typing import Dict, List

from app.engine.model_builder import capacity_profile
from app.models.constraints import PrecedenceSemantics, RelationType
from app.models.entities import ProblemDefinition, ScheduledTask, Solution


def makespan(solution: Solution) -> int:
    return solution.makespan


def last_unit(task: ScheduledTask) -> int:
    return task.start + task.duration - 1


def find_violations(
    problem: ProblemDefinition,
    solution: Solution,
    semantics: PrecedenceSemantics = PrecedenceSemantics.INTUITIVE,
) -> List[str]:
    """
    Check a solution against the problem it was solved for.

    Returns a list of human-readable violations, empty when the solution
    honours every precedence relation and capacity ceiling.
    """
    violations: List[str] = []
    by_id: Dict[str, ScheduledTask] = {
        task.id: scheduled for task, scheduled in zip(problem.tasks, solution.tasks)
    }

    for task in problem.tasks:
        source = by_id[task.id]
        for relation in task.relations:
            target = by_id[relation.target_task_id]
            if relation.type == RelationType.AFTER:
                ok = source.start > last_unit(target)
            elif semantics == PrecedenceSemantics.LITERAL:
                ok = last_unit(source) > target.start
            else:
                ok = target.start > last_unit(source)
            if not ok:
                violations.append(f"{task.id} {relation.type.value} {relation.target_task_id} violated")

    horizon = max((last_unit(t) for t in solution.tasks), default=-1)
    for t, capacity in sorted(capacity_profile(problem.resource_windows, horizon).items()):
        used = sum(
            task.resource_demand
            for task in problem.tasks
            if by_id[task.id].start <= t <= last_unit(by_id[task.id])
        )
        if used > capacity:
            violations.append(f"capacity {capacity} exceeded at t={t}: {used} used")

    return violations
