"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs with upper-case aliases for the common
settings (e.g. MAX_ABS_STAGE_CHANGE -> network.max_abs_stage_change) and
nested sections for everything else.

Users only specify what they want to override from the expert defaults.
"""

from typing import Literal, Optional, Union
from pydantic import Field, field_validator
from imodval.schemas.base import ImodvalBaseModel
from imodval.schemas.param import coerce_grid_setting


class UserGridConfig(ImodvalBaseModel):
    """User-facing grid config."""
    nodata: Optional[float] = None
    nan_for_nodata: Optional[bool] = None
    extent_tolerance: Optional[float] = None
    upscale_method: Optional[str] = None

    @field_validator("upscale_method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        """Normalize method names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class UserCursorConfig(ImodvalBaseModel):
    """User-facing cursor config."""
    extent_method: Optional[str] = None
    clip_extent: Optional[tuple[float, float, float, float]] = None


class UserOrphanConfig(ImodvalBaseModel):
    """User-facing orphan detection config."""
    radius: Optional[Union[float, str]] = None
    max_recursive_level: Optional[Union[float, str]] = None
    precision: Optional[int] = None
    max_main_connection_count: Optional[Union[float, str]] = None
    min_most_occurring_count: Optional[Union[float, str]] = None
    max_other_value_count: Optional[Union[float, str]] = None
    min_difference: Optional[Union[float, str]] = None
    level_error_margin: Optional[float] = None
    cellsize: Optional[float] = None

    @field_validator(
        "radius", "max_recursive_level",
        "max_main_connection_count", "min_most_occurring_count",
        "max_other_value_count", "min_difference", mode="before",
    )
    @classmethod
    def coerce_setting(cls, v):
        return coerce_grid_setting(v)


class UserNetworkConfig(ImodvalBaseModel):
    """User-facing network config."""
    distance_error_margin: Optional[float] = None
    max_rel_stage_change: Optional[float] = None
    max_abs_stage_change: Optional[float] = None
    level_column: Optional[str] = None
    include_interior_nodes: Optional[bool] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class UserLoggingConfig(ImodvalBaseModel):
    """User-facing logging config."""
    level: Optional[str] = None
    log_dir: Optional[str] = None
    log_name: Optional[str] = None


class UserConfig(ImodvalBaseModel):
    """User-facing configuration schema.

    Usage
    -----
        user_cfg = UserConfig(
            MAX_ABS_STAGE_CHANGE=0.5,
            CLIP_EXTENT=(0, 0, 1000, 1000),
            LOG_LEVEL="debug",
        )

        internal = resolve_config(param_cfg, user_cfg)
    """

    # Flat aliases for the common settings
    nodata: Optional[float] = Field(None, alias="NODATA")
    nan_for_nodata: Optional[bool] = Field(None, alias="NAN_FOR_NODATA")
    extent_method: Optional[Literal["min", "max", "first"]] = Field(None, alias="EXTENT_METHOD")
    clip_extent: Optional[tuple[float, float, float, float]] = Field(None, alias="CLIP_EXTENT")
    distance_error_margin: Optional[float] = Field(None, alias="DISTANCE_ERROR_MARGIN")
    max_rel_stage_change: Optional[float] = Field(None, alias="MAX_REL_STAGE_CHANGE")
    max_abs_stage_change: Optional[float] = Field(None, alias="MAX_ABS_STAGE_CHANGE")
    start_date: Optional[str] = Field(None, alias="START_DATE")
    end_date: Optional[str] = Field(None, alias="END_DATE")
    log_level: Optional[str] = Field(None, alias="LOG_LEVEL")
    log_dir: Optional[str] = Field(None, alias="LOG_DIR")
    output_dir: Optional[str] = Field(None, alias="OUTPUT_DIR")

    # Nested overrides (advanced users)
    grid: Optional[UserGridConfig] = None
    cursor: Optional[UserCursorConfig] = None
    orphan: Optional[UserOrphanConfig] = None
    network: Optional[UserNetworkConfig] = None
    logging: Optional[UserLoggingConfig] = None

    model_config = ImodvalBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("extent_method", "log_level", mode="before")
    @classmethod
    def normalize_names(cls, v):
        """Normalize names; extent methods lowercase."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Nested sections win over flat aliases for the same field.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.output_dir is not None:
            overrides["output_dir"] = str(self.output_dir)

        sections = {
            "grid": ({"nodata": self.nodata, "nan_for_nodata": self.nan_for_nodata},
                     self.grid),
            "cursor": ({"extent_method": self.extent_method,
                        "clip_extent": self.clip_extent},
                       self.cursor),
            "network": ({"distance_error_margin": self.distance_error_margin,
                         "max_rel_stage_change": self.max_rel_stage_change,
                         "max_abs_stage_change": self.max_abs_stage_change,
                         "start_date": self.start_date,
                         "end_date": self.end_date},
                        self.network),
            "logging": ({"level": self.log_level.upper() if self.log_level else None,
                         "log_dir": self.log_dir},
                        self.logging),
            "orphan": ({}, self.orphan),
        }

        for name, (flat, nested) in sections.items():
            section = {key: value for key, value in flat.items() if value is not None}
            if nested is not None:
                section.update(nested.model_dump(exclude_none=True))
            if section:
                overrides[name] = section

        return overrides
