from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from app.models.constraints import RelationConstraint


class SearchMode(str, Enum):
    FEASIBILITY = "feasibility"
    MINIMIZE_MAKESPAN = "minimize-makespan"


class SolveStatus(str, Enum):
    OPTIMAL = "optimal"
    FEASIBLE = "feasible"
    INFEASIBLE = "infeasible"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed-out"


@dataclass(frozen=True)
class ResourceWindow:
    from_time: int
    until_time: int  # inclusive
    capacity: int


@dataclass(frozen=True)
class Task:
    id: str
    name: str
    duration: int  # time units
    resource_demand: int = 0  # units consumed per occupied time unit
    relations: Tuple[RelationConstraint, ...] = ()


@dataclass(frozen=True)
class ProblemDefinition:
    resource_windows: Tuple[ResourceWindow, ...]
    tasks: Tuple[Task, ...]


@dataclass(frozen=True)
class ScheduledTask:
    name: str
    start: int
    duration: int

    @property
    def end(self) -> int:
        """Exclusive finish time."""
        return self.start + self.duration


@dataclass(frozen=True)
class Solution:
    tasks: Tuple[ScheduledTask, ...]

    @property
    def makespan(self) -> int:
        return max((t.end for t in self.tasks), default=0)


@dataclass(frozen=True)
class SolveResult:
    status: SolveStatus
    solution: Optional[Solution] = None
    makespan: Optional[int] = None
    solver_used: str = "backtracking"
    nodes: int = 0
    solutions_found: int = 0
    elapsed_seconds: float = field(default=0.0, compare=False)

    @property
    def is_success(self) -> bool:
        return self.status in (SolveStatus.OPTIMAL, SolveStatus.FEASIBLE)
