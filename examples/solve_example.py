"""
Example: scheduling a small release plan

Five tasks share a team whose size grows from one to two people at t=4.
The solver returns the schedule with the earliest possible finish, which
is printed as an ASCII Gantt chart.
"""

from app.engine.scheduler import solve
from app.models.constraints import RelationConstraint, RelationType
from app.models.entities import ProblemDefinition, ResourceWindow, SearchMode, Task
from app.utils.gantt import render_gantt
from app.utils.logging_config import setup_logging

setup_logging()


def before(task_id: str) -> RelationConstraint:
    return RelationConstraint(type=RelationType.BEFORE, target_task_id=task_id)


def after(task_id: str) -> RelationConstraint:
    return RelationConstraint(type=RelationType.AFTER, target_task_id=task_id)


# 1. Describe the team: one person until t=3, two from t=4 on
windows = (
    ResourceWindow(from_time=0, until_time=3, capacity=1),
    ResourceWindow(from_time=4, until_time=12, capacity=2),
)

# 2. Describe the work
tasks = (
    Task(id="spec", name="Spec", duration=2, resource_demand=1, relations=(before("api"), before("ui"))),
    Task(id="api", name="API", duration=3, resource_demand=1),
    Task(id="ui", name="UI", duration=2, resource_demand=1),
    Task(id="docs", name="Docs", duration=1, resource_demand=1, relations=(after("spec"),)),
    Task(id="release", name="Release", duration=1, relations=(after("api"), after("ui"), after("docs"))),
)

# 3. Solve and print
result = solve(ProblemDefinition(resource_windows=windows, tasks=tasks), mode=SearchMode.MINIMIZE_MAKESPAN)

print(f"status: {result.status.value}, makespan: {result.makespan}, solver: {result.solver_used}")
if result.is_success:
    print(render_gantt(result.solution))
