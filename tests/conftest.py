"""Root-level pytest fixtures for the imodval test suite.

Provides shared configuration fixtures following the Pydantic-based
configuration layers. Tests use these fixtures instead of raw dict configs.
"""

import pytest
from pathlib import Path
import tempfile
import shutil

from imodval.schemas import ParamConfig, UserConfig, resolve_config


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults."""
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides).

    Use this when tests don't care about specific config values and just
    need a valid InternalConfig to pass to constructors.
    """
    return resolve_config(param_config, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Returns a callable that accepts UserConfig-compatible kwargs.

    Examples
    --------
    >>> def test_strict_levels(make_config):
    ...     config = make_config(MAX_ABS_STAGE_CHANGE=0.2)
    ...     assert config.network.max_abs_stage_change == 0.2
    """
    def _make(**user_overrides):
        """Create InternalConfig with user overrides."""
        if user_overrides:
            user = UserConfig(**user_overrides)
            return resolve_config(param_config, user)
        return resolve_config(param_config, None)

    return _make


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)
