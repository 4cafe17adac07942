from typing import List

from app.engine.model_builder import SchedulingModel
from app.models.entities import ProblemDefinition, ScheduledTask, Solution


def extract_solution(problem: ProblemDefinition, model: SchedulingModel, values: List[int]) -> Solution:
    """Map a solved assignment back to task-level results, in input order.

    ``values`` is a store snapshot indexed by variable index, so the returned
    Solution holds plain integers and no reference to the model.
    """
    return Solution(
        tasks=tuple(
            ScheduledTask(name=task.name, start=values[timing.start.index], duration=task.duration)
            for task, timing in zip(problem.tasks, model.timings)
        )
    )
