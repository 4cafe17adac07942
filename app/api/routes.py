from typing import List, Optional
import logging

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.config.settings import get_settings
from app.engine.scheduler import resolve_options, solve
from app.models.constraints import PrecedenceSemantics, RelationConstraint, RelationType
from app.models.entities import (
    ProblemDefinition,
    ResourceWindow,
    ScheduledTask,
    SearchMode,
    SolveResult,
    SolveStatus,
    Task,
)
from app.models.errors import ConfigurationError
from app.storage.cache import ScheduleCache
from app.utils.benchmarking import benchmark_solvers
from app.utils.gantt import render_gantt

router = APIRouter()
settings = get_settings()
cache = ScheduleCache() if settings.cache_enabled else None
logger = logging.getLogger(__name__)

SOLVER_PATTERN = "^(auto|backtracking|ortools)$"


class RelationDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: RelationType
    target_task_id: str = Field(..., alias="taskIdRelationTo")

    def to_domain(self) -> RelationConstraint:
        return RelationConstraint(type=self.type, target_task_id=self.target_task_id)


class ResourceWindowDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_time: int = Field(..., alias="timeUnitFrom")
    until_time: int = Field(..., alias="timeUnitUntil")
    capacity: int = Field(..., ge=0, alias="nbrOfResources")

    @model_validator(mode="after")
    def validate_bounds(self):
        """Window bounds are inclusive and must not be inverted."""
        if self.from_time > self.until_time:
            raise ValueError("resource window must satisfy timeUnitFrom <= timeUnitUntil")
        return self

    def to_domain(self) -> ResourceWindow:
        return ResourceWindow(from_time=self.from_time, until_time=self.until_time, capacity=self.capacity)


class TaskDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    duration: int = Field(..., alias="length")
    resource_demand: int = Field(0, ge=0, alias="requiredResources")
    relations: List[RelationDTO] = Field(default_factory=list, alias="relationConstraints")

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v: int):
        """A task occupies at least one time unit."""
        if v < 1:
            raise ValueError("length must be a positive number of time units")
        return v

    def to_domain(self) -> Task:
        return Task(
            id=self.id,
            name=self.name,
            duration=self.duration,
            resource_demand=self.resource_demand,
            relations=tuple(r.to_domain() for r in self.relations),
        )


class GanttRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resource_windows: List[ResourceWindowDTO] = Field(default_factory=list, alias="resourceAllocations")
    tasks: List[TaskDTO]

    def to_domain(self) -> ProblemDefinition:
        return ProblemDefinition(
            resource_windows=tuple(w.to_domain() for w in self.resource_windows),
            tasks=tuple(t.to_domain() for t in self.tasks),
        )


class ScheduledTaskDTO(BaseModel):
    name: str
    start: int
    length: int

    @classmethod
    def from_domain(cls, t: ScheduledTask) -> "ScheduledTaskDTO":
        return cls(name=t.name, start=t.start, length=t.duration)


class GanttResponse(BaseModel):
    plan_id: str
    status: SolveStatus
    tasks: List[ScheduledTaskDTO]
    makespan: int
    solver_used: str
    cached: bool = False


class BenchmarkEntry(BaseModel):
    solver_name: str
    time_seconds: float
    makespan: Optional[int]
    success: bool
    status: str
    violations: int


class BenchmarkResponse(BaseModel):
    results: List[BenchmarkEntry]
    num_tasks: int


def _solve_or_raise(
    req: GanttRequest,
    mode: Optional[SearchMode],
    semantics: Optional[PrecedenceSemantics],
    solver: Optional[str],
) -> SolveResult:
    """Run the solver and translate non-success outcomes into HTTP errors."""
    try:
        result = solve(req.to_domain(), mode=mode, semantics=semantics, solver=solver)
    except ConfigurationError as exc:
        logger.warning(f"Rejected problem definition: {exc}")
        raise HTTPException(status_code=400, detail=str(exc))

    if result.status == SolveStatus.INFEASIBLE:
        logger.warning("No feasible schedule found")
        raise HTTPException(status_code=422, detail="No feasible schedule found")
    if not result.is_success:
        logger.warning(f"Search ended without a schedule: {result.status.value}")
        raise HTTPException(status_code=504, detail=f"Search {result.status.value} before a schedule was found")
    return result


@router.post("/gantt/calculate/{plan_id}", response_model=GanttResponse, summary="Calculate a Gantt schedule")
def calculate(
    plan_id: str,
    req: GanttRequest,
    mode: Optional[SearchMode] = Query(None, description="feasibility or minimize-makespan"),
    semantics: Optional[PrecedenceSemantics] = Query(None, description="BEFORE encoding: intuitive or literal"),
    solver: Optional[str] = Query(None, pattern=SOLVER_PATTERN, description="Solver: auto, backtracking, or ortools"),
):
    """
    Schedule tasks onto a timeline under precedence relations and resource windows.

    Declared as a sync endpoint: FastAPI runs it on its worker thread pool, so
    a long search never blocks request intake.

    **Error Handling:**
    - 400: Configuration error (unknown relation target, duplicate task id, ...)
    - 422: Invalid payload, or no feasible schedule exists
    - 504: Search timed out before any schedule was found

    **Returns:**
    - `tasks`: name, start and length per task, in request order
    - `makespan`: exclusive finish time of the last task
    """
    logger.info(f"Calculate request {plan_id}: {len(req.tasks)} tasks, {len(req.resource_windows)} windows")

    problem_hash = None
    if cache is not None:
        # Keyed on resolved options, not on what the request left unset
        mode, semantics, solver = resolve_options(req.to_domain(), mode, semantics, solver)
        options = {"mode": mode.value, "semantics": semantics.value, "solver": solver}
        problem_hash = ScheduleCache.hash_problem(req.model_dump(), options)
        cached_result = cache.get(problem_hash)
        if cached_result:
            logger.info("Cache hit")
            return {**cached_result, "plan_id": plan_id, "cached": True}

    result = _solve_or_raise(req, mode, semantics, solver)
    logger.debug("Schedule:\n" + render_gantt(result.solution))

    response = GanttResponse(
        plan_id=plan_id,
        status=result.status,
        tasks=[ScheduledTaskDTO.from_domain(t) for t in result.solution.tasks],
        makespan=result.makespan,
        solver_used=result.solver_used,
    )
    if cache is not None:
        cache.set(problem_hash, response.model_dump(mode="json"))
    return response


@router.post("/gantt/render", response_class=PlainTextResponse, summary="Render a schedule as text")
def render(
    req: GanttRequest,
    mode: Optional[SearchMode] = Query(None),
    semantics: Optional[PrecedenceSemantics] = Query(None),
    solver: Optional[str] = Query(None, pattern=SOLVER_PATTERN),
):
    """Solve and return the schedule as an ASCII Gantt chart."""
    result = _solve_or_raise(req, mode, semantics, solver)
    return render_gantt(result.solution)


@router.post("/gantt/benchmark", response_model=BenchmarkResponse, summary="Benchmark solvers")
def benchmark(
    req: GanttRequest,
    mode: SearchMode = Query(SearchMode.MINIMIZE_MAKESPAN),
    semantics: PrecedenceSemantics = Query(PrecedenceSemantics.INTUITIVE),
):
    """
    Compare the backtracking engine and OR-Tools on the same problem instance.

    **Returns:**
    - Timing, makespan and success metrics for each solver
    """
    logger.info(f"Benchmark request: {len(req.tasks)} tasks")
    try:
        results = benchmark_solvers(req.to_domain(), mode, semantics, settings.solver_time_limit_seconds)
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    logger.info(f"Benchmark complete: {len(results)} solvers compared")
    return {
        "results": [
            BenchmarkEntry(
                solver_name=r.solver_name,
                time_seconds=r.time_seconds,
                makespan=r.makespan,
                success=r.success,
                status=r.status,
                violations=r.violations,
            )
            for r in results
        ],
        "num_tasks": len(req.tasks),
    }
