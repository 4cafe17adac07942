import pytest
from app.models.constraints import RelationConstraint, RelationType
from app.models.entities import ProblemDefinition, ResourceWindow, Task


def before(target_id):
    return RelationConstraint(type=RelationType.BEFORE, target_task_id=target_id)


def after(target_id):
    return RelationConstraint(type=RelationType.AFTER, target_task_id=target_id)


@pytest.fixture
def serial_problem():
    """Two tasks on a single-unit resource, A declared BEFORE B."""
    return ProblemDefinition(
        resource_windows=(ResourceWindow(from_time=0, until_time=10, capacity=1),),
        tasks=(
            Task(id="a", name="A", duration=3, resource_demand=1, relations=(before("b"),)),
            Task(id="b", name="B", duration=2, resource_demand=1),
        ),
    )


@pytest.fixture
def parallel_problem():
    """No relations and enough capacity for every task at once."""
    return ProblemDefinition(
        resource_windows=(ResourceWindow(from_time=0, until_time=20, capacity=10),),
        tasks=(
            Task(id="design", name="Design", duration=3, resource_demand=2),
            Task(id="build", name="Build", duration=5, resource_demand=3),
            Task(id="test", name="Test", duration=2, resource_demand=1),
        ),
    )


@pytest.fixture
def contended_problem():
    """Three equal tasks competing for a single-unit resource."""
    return ProblemDefinition(
        resource_windows=(ResourceWindow(from_time=0, until_time=20, capacity=1),),
        tasks=tuple(
            Task(id=f"t{i}", name=f"Task {i}", duration=2, resource_demand=1)
            for i in range(3)
        ),
    )


@pytest.fixture
def project_problem():
    """Small project mixing relations and a capacity profile that changes over time."""
    return ProblemDefinition(
        resource_windows=(
            ResourceWindow(from_time=0, until_time=3, capacity=1),
            ResourceWindow(from_time=4, until_time=12, capacity=2),
        ),
        tasks=(
            Task(id="spec", name="Spec", duration=2, resource_demand=1),
            Task(id="api", name="API", duration=3, resource_demand=1, relations=(after("spec"),)),
            Task(id="ui", name="UI", duration=2, resource_demand=1, relations=(after("spec"),)),
            Task(id="docs", name="Docs", duration=1, resource_demand=1, relations=(before("release"),)),
            Task(id="release", name="Release", duration=1, resource_demand=2, relations=(after("api"), after("ui"))),
        ),
    )


@pytest.fixture
def infeasible_problem():
    """A task demanding more than the window ever allows."""
    return ProblemDefinition(
        resource_windows=(ResourceWindow(from_time=0, until_time=10, capacity=1),),
        tasks=(
            Task(id="big", name="Big", duration=5, resource_demand=2),
            Task(id="small", name="Small", duration=5, resource_demand=1),
        ),
    )


@pytest.fixture
def crew_problem():
    """Ten tasks needing two of three crew members, so no two can ever overlap.

    The optimum is the serial length (23), found at once by labeling but
    expensive for the native engine to prove.
    """
    durations = [3, 2, 4, 1, 3, 2, 2, 3, 1, 2]
    return ProblemDefinition(
        resource_windows=(ResourceWindow(from_time=0, until_time=50, capacity=3),),
        tasks=tuple(
            Task(id=f"job{i}", name=f"Job {i}", duration=d, resource_demand=2) for i, d in enumerate(durations)
        ),
    )
