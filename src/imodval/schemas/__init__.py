"""Pydantic configuration schemas for imodval.

All configuration validation, coercion, and normalization happens at
schema validation time via Pydantic.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
"""

from imodval.schemas.resolve import resolve_config
from imodval.schemas.internal import InternalConfig
from imodval.schemas.param import ParamConfig
from imodval.schemas.user import UserConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
]
