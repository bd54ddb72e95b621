"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized and immutable.
"""

from typing import Literal, Optional, Union
from pydantic import ConfigDict
from imodval.schemas.base import ImodvalBaseModel


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalGridConfig(ImodvalBaseModel):
    """Runtime grid handling configuration."""
    nodata: float
    nan_for_nodata: bool
    extent_tolerance: float
    upscale_method: Literal["most_occurring", "minimum", "maximum", "mean"]


class InternalCursorConfig(ImodvalBaseModel):
    """Runtime multi-grid iteration configuration."""
    extent_method: Literal["min", "max", "first"]
    clip_extent: Optional[tuple[float, float, float, float]]


class InternalOrphanConfig(ImodvalBaseModel):
    """Runtime orphan detection configuration.

    Threshold fields are a float, or a str naming a setting grid.
    """
    radius: Union[float, str]
    max_recursive_level: Union[float, str]
    precision: int
    max_main_connection_count: Union[float, str]
    min_most_occurring_count: Union[float, str]
    max_other_value_count: Union[float, str]
    min_difference: Union[float, str]
    level_error_margin: float
    cellsize: Optional[float]


class InternalNetworkConfig(ImodvalBaseModel):
    """Runtime network configuration."""
    distance_error_margin: float
    max_rel_stage_change: float
    max_abs_stage_change: float
    level_column: str
    include_interior_nodes: bool
    start_date: Optional[str]
    end_date: Optional[str]


class InternalLoggingConfig(ImodvalBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    log_dir: Optional[str]
    log_name: str


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(ImodvalBaseModel):
    """Authoritative runtime configuration.

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.margin = config.network.distance_error_margin  # NOT .get()

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO validation in runtime code
    """

    grid: InternalGridConfig
    cursor: InternalCursorConfig
    orphan: InternalOrphanConfig
    network: InternalNetworkConfig
    logging: InternalLoggingConfig
    output_dir: Optional[str]

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )
