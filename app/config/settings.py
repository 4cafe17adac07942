from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from app.models.constraints import PrecedenceSemantics
from app.models.entities import SearchMode


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="AUTOPLANNER_", extra="ignore")

    app_name: str = "AutoPlanner"
    debug: bool = True
    redis_url: str = "redis://localhost:6379/0"
    cache_enabled: bool = False
    cache_ttl_seconds: int = 3600
    solver_type: str = "auto"  # auto | backtracking | ortools
    solver_time_limit_seconds: float = 10.0
    search_mode: SearchMode = SearchMode.MINIMIZE_MAKESPAN
    precedence_semantics: PrecedenceSemantics = PrecedenceSemantics.INTUITIVE
    # auto mode switches to CP-SAT above this many per-unit occupancy indicators
    auto_ortools_threshold: int = 200


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
