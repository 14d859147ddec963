"""
Ambient settings using pydantic-settings.

Defaults for every merge come from environment variables with the
MERGEABLE_ prefix:

  MERGEABLE_ENVIRONMENT_PREFIX=APP_      # default variable prefix for fields
  MERGEABLE_ENVIRONMENT_OVERLAY=false    # disable environment overrides
  MERGEABLE_DEBUG=true                   # trace merge decisions at DEBUG level

Options passed to merge() take precedence over these values.
"""

import functools as _functools

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import mergeable.environment as environment


class MergeSettings(_pydantic_settings.BaseSettings):
    """
    Process-level merge defaults.

    Precedence (highest to lowest):
    1. Constructor arguments
    2. Environment variables (MERGEABLE_*)
    3. Field defaults
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="MERGEABLE_",
        extra="ignore",
    )

    environment_prefix: str = environment.DEFAULT_ENVIRONMENT_PREFIX
    """Prefix for field variables of records that are not Overridable."""

    environment_overlay: bool = True
    """Whether scalar fields are looked up in the environment at all."""

    debug: bool = False
    """Log every merge decision at DEBUG level."""

    @_pydantic.field_validator("environment_prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        if "=" in value or "\x00" in value:
            raise ValueError("environment_prefix cannot contain '=' or NUL")
        return value


@_functools.lru_cache(maxsize=1)
def get_settings() -> MergeSettings:
    """
    Get the process-wide settings, read once from the environment.

    Call get_settings.cache_clear() to re-read them.
    """
    return MergeSettings()
