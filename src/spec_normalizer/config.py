"""Normalizer settings, read from SPEC_NORMALIZER_* environment variables."""

from typing import Annotated

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

ENV_PREFIX = "SPEC_NORMALIZER_"

DEFAULT_LOG_LEVEL = "WARNING"


class NormalizerSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX, env_ignore_empty=True, extra="ignore", frozen=True, populate_by_name=True
    )

    # Reject inputs claimed by more than one parser instead of taking the first
    strict_dispatch: bool = False
    # Type names the validator accepts on top of the built-in set
    extra_builtin_types: Annotated[list[str], NoDecode] = Field(
        default=[],
        validation_alias=AliasChoices("extra_builtin_types", f"{ENV_PREFIX}EXTRA_BUILTINS"),
    )
    log_level: str = DEFAULT_LOG_LEVEL

    @field_validator("extra_builtin_types", mode="before")
    @classmethod
    def _split_names(cls, v):
        if isinstance(v, str):
            return [name.strip() for name in v.split(",") if name.strip()]
        return v

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper()
