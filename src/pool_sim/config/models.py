from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

PoolingStrategy = Literal["FixedWindow", "FlexibleWindow"]
MatchingAlgorithm = Literal["Proximity"]


class AreaModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    width: float = Field(default=100.0, gt=0)
    height: float = Field(default=100.0, gt=0)


class GridModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    rows: int = Field(default=4, ge=2, le=10)
    cols: int = Field(default=4, ge=2, le=10)


class SimulationParams(BaseModel):
    """Operator-facing knobs; the control surface validates every update against these."""

    model_config = ConfigDict(extra="forbid", frozen=True)
    area_dimensions: AreaModel = Field(default_factory=AreaModel)
    request_rate: float = Field(default=60.0, ge=0, le=300)  # requests / minute
    driver_supply: int = Field(default=50, ge=0, le=200)
    pooling_time: float = Field(default=5.0, ge=1, le=15)  # seconds
    matching_algorithm: MatchingAlgorithm = "Proximity"
    grid_resolution: GridModel = Field(default_factory=GridModel)
    pooling_strategy: PoolingStrategy = "FixedWindow"
    # offer the oldest eligible requests first when drivers are scarce
    age_priority: bool = False


# ----------------- ENGINE ---------------------


class EngineModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    tick_ms: int = Field(default=250, gt=0)
    step_distance: float = Field(default=0.5, gt=0)
    release_delay_ms: tuple[int, int] = (5_000, 10_000)
    flexible_cutoff: float = Field(default=0.8, gt=0, le=1)
    log_cap: int = Field(default=100, ge=1)

    @field_validator("release_delay_ms")
    @classmethod
    def _ordered(cls, v: tuple[int, int], info: ValidationInfo) -> tuple[int, int]:
        lo, hi = v
        if lo < 0 or hi < lo:
            raise ValueError(f"{info.field_name} must satisfy 0 <= low <= high, got {v}")
        return v


class OracleModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    enabled: bool = False
    spread: float = Field(default=0.2, ge=0, lt=1)  # multiplicative noise around distance
    maxsize: int = Field(default=64, ge=1)


class LogModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False
    sample_every: int = Field(default=1, ge=1)


class ScenarioModel(BaseModel):
    model_config = ConfigDict(extra="forbid")
    name: str = "default"
    run_id: str = "local"
    seed: int = 0
    params: SimulationParams = Field(default_factory=SimulationParams)
    engine: EngineModel = Field(default_factory=EngineModel)
    oracle: OracleModel = Field(default_factory=OracleModel)
    log: LogModel = Field(default_factory=LogModel)

    @model_validator(mode="after")
    def _tick_fits_window(self):
        # a tick longer than the pooling window would skip whole matching cycles
        if self.engine.tick_ms > self.params.pooling_time * 1000:
            raise ValueError(
                f"engine.tick_ms ({self.engine.tick_ms}) exceeds the pooling window "
                f"({self.params.pooling_time}s)"
            )
        return self
