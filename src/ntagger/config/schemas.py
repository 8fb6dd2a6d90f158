from __future__ import annotations
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Literal, Optional, List, Union

class RunCfg(BaseModel):
    """
    Global run controls.
    """

    # Performance / execution
    workers: Union[int, Literal["auto"]] = 0
    progress: bool = False

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=minimal, 2=verbose

    # Limits
    max_events: Optional[int] = None

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v

    @field_validator("workers")
    def _workers_nonneg(cls, v):
        if isinstance(v, int) and v < 0:
            raise ValueError("workers must be >= 0 or 'auto'")
        return v

class IOCfg(BaseModel):
    """
    Input description. Only reading is supported.

    TOML:

    [io]
    input_path = "events.h5"
    """

    input_path: str
    hits_group: str = "/hits"
    events_group: str = "/events"

class GeometryCfg(BaseModel):
    """
    PMT positions and tank dimensions.

    TOML:

    [geometry]
    pmt_table = "pmt_xyz.npz"    # .npy / .npz / .h5
    tank_radius_cm = 1690.0
    tank_half_height_cm = 1810.0
    """

    pmt_table: Optional[str] = None
    pmt_dataset: str = "/geometry/pmt_xyz"
    tank_radius_cm: float = 1690.0
    tank_half_height_cm: float = 1810.0

    @field_validator("tank_radius_cm", "tank_half_height_cm")
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("tank dimensions must be positive")
        return v

class TofCfg(BaseModel):
    light_speed_cm_per_ns: float = 21.5833  # speed of light in water
    use_residual: bool = True  # subtract ToF from raw hit times
    sort: bool = True

    @field_validator("light_speed_cm_per_ns")
    def _positive_speed(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("light_speed_cm_per_ns must be positive")
        return v

    @field_validator("sort")
    def _sorted_required(cls, v: bool) -> bool:
        # the candidate scan only accepts ascending residual times
        if not v:
            raise ValueError("tof.sort = false is not supported by the candidate search")
        return v

class SearchCfg(BaseModel):
    """
    Candidate search thresholds.

    Counts are numbers of hits; windows in ns; start-time bounds in us.
    """

    primary_window_ns: float = 10.0
    min_count: int = 7
    max_count: int = 50
    wide_window_ns: float = 200.0
    max_wide_count: int = 200
    min_peak_separation_ns: float = 50.0
    start_time_floor_us: float = 5.0
    start_time_ceiling_us: float = 535.0

    @field_validator("primary_window_ns", "wide_window_ns")
    def _positive_window(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("window widths must be positive")
        return v

    @field_validator("min_peak_separation_ns")
    def _nonneg_sep(cls, v: float) -> float:
        if v < 0:
            raise ValueError("min_peak_separation_ns must be >= 0")
        return v

    @field_validator("min_count")
    def _min_count(cls, v: int) -> int:
        if v < 1:
            raise ValueError("min_count must be >= 1")
        return v

    @model_validator(mode="after")
    def _ranges(self) -> "SearchCfg":
        if self.min_count > self.max_count:
            raise ValueError(
                f"min_count={self.min_count} exceeds max_count={self.max_count}"
            )
        if self.max_wide_count < self.min_count:
            raise ValueError(
                f"max_wide_count={self.max_wide_count} is below min_count={self.min_count}"
            )
        if self.start_time_floor_us > self.start_time_ceiling_us:
            raise ValueError(
                f"start_time_floor_us={self.start_time_floor_us} exceeds "
                f"start_time_ceiling_us={self.start_time_ceiling_us}"
            )
        return self

class FiltersCfg(BaseModel):
    deadtime_us: float = 0.0  # same-PMT hit reduction; 0 disables
    charge_gate_ns: List[float] = [479.2, 1779.2]

    @field_validator("deadtime_us")
    def _nonneg_deadtime(cls, v: float) -> float:
        if v < 0:
            raise ValueError("deadtime_us must be >= 0")
        return v

    @field_validator("charge_gate_ns")
    def _gate(cls, v: List[float]) -> List[float]:
        if len(v) != 2 or v[0] > v[1]:
            raise ValueError("charge_gate_ns must be [low, high] with low <= high")
        return v


class Config(BaseModel):
    """
    Top-level TOML configuration.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    io: Optional[IOCfg] = None
    geometry: GeometryCfg = Field(default_factory=GeometryCfg)
    tof: TofCfg = Field(default_factory=TofCfg)
    search: SearchCfg = Field(default_factory=SearchCfg)
    filters: FiltersCfg = Field(default_factory=FiltersCfg)
