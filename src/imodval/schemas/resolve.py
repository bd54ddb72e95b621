"""Configuration resolution and merging logic.

This module provides the single entrypoint for configuration resolution:
resolve_config(). It merges ParamConfig and UserConfig in precedence
order and returns a validated InternalConfig.

Precedence (highest to lowest):
1. UserConfig (user overrides)
2. ParamConfig (expert defaults)
"""

from typing import Union, Optional
from imodval.schemas.param import ParamConfig
from imodval.schemas.user import UserConfig
from imodval.schemas.internal import InternalConfig


def deep_merge(base: dict, *overrides: dict) -> dict:
    """Deep merge multiple dictionaries.

    Later dictionaries override earlier ones. Nested dictionaries are
    merged recursively; other values are replaced.

    Parameters
    ----------
    base : dict
        Base dictionary (lowest priority)
    *overrides : dict
        Override dictionaries (higher priority, left to right)

    Returns
    -------
    dict
        Merged dictionary

    Examples
    --------
    >>> base = {"a": 1, "b": {"c": 2, "d": 3}}
    >>> override = {"b": {"d": 4, "e": 5}, "f": 6}
    >>> deep_merge(base, override)
    {'a': 1, 'b': {'c': 2, 'd': 4, 'e': 5}, 'f': 6}
    """
    result = base.copy()

    for override in overrides:
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = deep_merge(result[key], value)
            else:
                result[key] = value

    return result


def resolve_config(
    param_cfg: Union[dict, ParamConfig],
    user_cfg: Optional[Union[dict, UserConfig]] = None,
) -> InternalConfig:
    """Resolve final runtime configuration from param and user configs.

    Parameters
    ----------
    param_cfg : dict or ParamConfig
        Expert configuration with complete defaults. Required.
    user_cfg : dict or UserConfig, optional
        User configuration with overrides. If None or empty, uses only param defaults.

    Returns
    -------
    InternalConfig
        Fully validated, immutable runtime configuration

    Raises
    ------
    ValidationError
        If any config fails Pydantic validation

    Examples
    --------
    >>> from imodval.schemas import resolve_config, ParamConfig, UserConfig
    >>> config = resolve_config(ParamConfig(), UserConfig(MAX_ABS_STAGE_CHANGE=0.5))
    >>> config.network.max_abs_stage_change
    0.5
    >>> config.network.distance_error_margin
    0.25
    """
    if not isinstance(param_cfg, ParamConfig):
        param = ParamConfig.model_validate(param_cfg)
    else:
        param = param_cfg

    if user_cfg is None or (isinstance(user_cfg, dict) and not user_cfg):
        user = UserConfig()
    elif not isinstance(user_cfg, UserConfig):
        user = UserConfig.model_validate(user_cfg)
    else:
        user = user_cfg

    merged = deep_merge(param.model_dump(), user.to_internal_overrides())

    # Validate the merged overrides against the expert schema (ranges,
    # literals), then freeze as InternalConfig
    validated = ParamConfig.model_validate(merged)
    return InternalConfig.model_validate(validated.model_dump())
