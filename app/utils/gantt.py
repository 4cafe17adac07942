from app.models.entities import ScheduledTask, Solution


def time_label(task: ScheduledTask) -> str:
    return f" {task.duration} {task.start}-{task.start + task.duration - 1} "


def render_task(task: ScheduledTask, name_width: int, time_width: int) -> str:
    if task.duration == 1:
        bar = "|"
    else:
        bar = "[" + " " * (task.duration - 2) + "]"
    return task.name.ljust(name_width) + time_label(task).ljust(time_width) + " " * max(0, task.start) + bar


def render_gantt(solution: Solution) -> str:
    """
    Render a solution as an ASCII Gantt chart, one line per task.

    Each line is the task name padded to the longest name, a
    " <duration> <first>-<last> " column, then a bar offset by `start`:
    "[   ]" spanning `duration` columns, or a bare "|" for single-unit tasks.
    """
    if not solution.tasks:
        return ""
    name_width = max(len(t.name) for t in solution.tasks)
    time_width = max(len(time_label(t)) for t in solution.tasks)
    return "\n".join(render_task(t, name_width, time_width) for t in solution.tasks)
