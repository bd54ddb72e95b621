"""ParamConfig: Expert defaults for validation runs.

This module defines the complete default configuration. ALL tunable
parameters must have defaults here. No runtime code should define
fallback values - this is the single source of truth for defaults.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

from typing import Literal, Optional, Union
from pydantic import Field, field_validator
from imodval.schemas.base import ImodvalBaseModel


# A threshold that is either a number or the path of a grid holding a
# value per cell.
GridSetting = Union[float, str]


def coerce_grid_setting(v):
    """Numbers and numeric strings become float, other strings are grid paths."""
    if v is None or isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return float(v)
    if isinstance(v, str):
        try:
            return float(v.strip())
        except ValueError:
            return v.strip()
    return v


def check_setting_minimum(v, minimum, name):
    """Numeric settings must be at least ``minimum``; grid paths pass through."""
    if v is None or isinstance(v, str):
        return v
    if v < minimum:
        raise ValueError(f"{name} must be at least {minimum}, got {v:g}")
    return v


# =============================================================================
# Nested Configuration Models
# =============================================================================

class GridConfig(ImodvalBaseModel):
    """Grid handling configuration."""
    nodata: float = Field(-9999.0, description="NoData sentinel for created grids")
    nan_for_nodata: bool = Field(False, description="Read NoData cells as NaN")
    extent_tolerance: float = Field(1e-6, ge=0, description="Tolerance when comparing extents")
    upscale_method: Literal["most_occurring", "minimum", "maximum", "mean"] = "most_occurring"

    @field_validator("upscale_method", mode="before")
    @classmethod
    def normalize_method_name(cls, v):
        """Normalize method names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class CursorConfig(ImodvalBaseModel):
    """Multi-grid iteration configuration."""
    extent_method: Literal["min", "max", "first"] = "min"
    clip_extent: Optional[tuple[float, float, float, float]] = Field(
        None, description="Area of interest (xmin, ymin, xmax, ymax)"
    )


class OrphanConfig(ImodvalBaseModel):
    """Orphan cell detection configuration."""
    radius: GridSetting = Field(1.0, description="Neighbourhood radius in cells, at least 1")
    max_recursive_level: GridSetting = Field(
        1.0, description="Hops the fill may take beyond the origin window, at least 0"
    )
    precision: int = Field(2, ge=0, description="Decimals used to compare values")
    max_main_connection_count: GridSetting = 2.0
    min_most_occurring_count: GridSetting = 4.0
    max_other_value_count: GridSetting = 1.0
    min_difference: GridSetting = 0.1
    level_error_margin: float = Field(0.0, ge=0)
    cellsize: Optional[float] = Field(None, gt=0, description="Optional coarser analysis cellsize")

    @field_validator(
        "radius", "max_recursive_level",
        "max_main_connection_count", "min_most_occurring_count",
        "max_other_value_count", "min_difference", mode="before",
    )
    @classmethod
    def coerce_setting(cls, v):
        """Accept numbers, numeric strings or grid paths."""
        return coerce_grid_setting(v)

    @field_validator("radius")
    @classmethod
    def check_radius(cls, v):
        return check_setting_minimum(v, 1, "radius")

    @field_validator("max_recursive_level")
    @classmethod
    def check_recursive_level(cls, v):
        return check_setting_minimum(v, 0, "max_recursive_level")


class NetworkConfig(ImodvalBaseModel):
    """Segment network configuration."""
    distance_error_margin: float = Field(0.25, gt=0, description="Junction tolerance in meters")
    # The per-meter limit is max(max_rel, max_abs / d) for points d meters
    # apart. At 0.2 m/m, 0.5 m over 100 m passes whatever max_abs is; only
    # limits well below max_abs / d let max_abs decide.
    max_rel_stage_change: float = Field(
        0.2, ge=0,
        description="Maximum level change per meter; the effective limit is "
                    "max(max_rel_stage_change, max_abs_stage_change / distance)",
    )
    max_abs_stage_change: float = Field(1.0, ge=0, description="Maximum absolute level change")
    level_column: str = "stage"
    include_interior_nodes: bool = False
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @field_validator("max_rel_stage_change", "max_abs_stage_change", mode="before")
    @classmethod
    def coerce_to_float(cls, v):
        """Allow int or float for thresholds."""
        return float(v)


class LoggingConfig(ImodvalBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_dir: Optional[str] = None
    log_name: str = "imodval.log"

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(ImodvalBaseModel):
    """Complete expert configuration with all defaults.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg)

    Runtime code only sees InternalConfig.
    """

    grid: GridConfig = Field(default_factory=GridConfig)
    cursor: CursorConfig = Field(default_factory=CursorConfig)
    orphan: OrphanConfig = Field(default_factory=OrphanConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    output_dir: Optional[str] = None
