import logging

from app.models.entities import ProblemDefinition
from app.models.errors import (
    DuplicateTaskIdError,
    InvalidDemandError,
    InvalidDurationError,
    InvalidResourceWindowError,
    UnknownTaskReferenceError,
)

logger = logging.getLogger(__name__)


def validate_problem(problem: ProblemDefinition) -> None:
    """
    Reject structurally invalid problems before any variable is allocated.

    Infeasibility is not checked here: a valid problem without a schedule is
    reported by the search, never by this function.

    Raises:
        DuplicateTaskIdError: two tasks share an id
        InvalidDurationError: a duration is zero or negative
        InvalidDemandError: a resource demand is negative
        UnknownTaskReferenceError: a relation targets a missing task id
        InvalidResourceWindowError: from_time > until_time or capacity < 0
    """
    task_ids = set()
    for task in problem.tasks:
        if task.id in task_ids:
            raise DuplicateTaskIdError(f"Duplicate task id {task.id!r}")
        task_ids.add(task.id)
        if task.duration <= 0:
            raise InvalidDurationError(f"Task {task.id!r} has non-positive duration {task.duration}")
        if task.resource_demand < 0:
            raise InvalidDemandError(f"Task {task.id!r} has negative resource demand {task.resource_demand}")

    for task in problem.tasks:
        for relation in task.relations:
            if relation.target_task_id not in task_ids:
                logger.warning(f"Task {task.id} references unknown task {relation.target_task_id}")
                raise UnknownTaskReferenceError(
                    f"Task {task.id!r} has a {relation.type.value} relation to unknown task {relation.target_task_id!r}"
                )

    for window in problem.resource_windows:
        if window.from_time > window.until_time:
            raise InvalidResourceWindowError(
                f"Resource window {window.from_time}..{window.until_time} starts after it ends"
            )
        if window.capacity < 0:
            raise InvalidResourceWindowError(
                f"Resource window {window.from_time}..{window.until_time} has negative capacity {window.capacity}"
            )
