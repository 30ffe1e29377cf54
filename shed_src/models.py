#!/usr/bin/env python3
# -*- coding: utf-8 -*-
#
# Copyright (c) 2026 plumiume
# SPDX-License-Identifier: MIT
# License: MIT License (https://opensource.org/licenses/MIT)
# See LICENSE.txt for details.

"""
Configuration and command models for shed.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

SHED_HOME = Path.home() / ".shed"
DEFAULT_CONFIG_PATH = SHED_HOME / "config.yaml"

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

Arity = Literal["required", "optional", "boolean"]
Target = Literal["container", "compose"]


# ============================================================================
# Command line models
# ============================================================================


class OptionSpec(BaseModel):
    """A flag recognized by shed itself"""

    model_config = ConfigDict(frozen=True)

    flags: Tuple[str, ...] = Field(description="Flag strings, name and aliases")
    dest: str = Field(description="Destination field on ShedOptions")
    arity: Arity = Field(default="required", description="Value arity")
    metavar: str = Field(default="")
    help: str = Field(default="")
    flag_value: Optional[str] = Field(
        default=None, description="Value used when an optional flag is given bare"
    )

    @field_validator("flags")
    @classmethod
    def validate_flags(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v:
            raise ValueError("OptionSpec needs at least one flag")
        for flag in v:
            if len(flag) < 2 or not flag.startswith("-"):
                raise ValueError(f"Invalid flag: {flag!r}")
        return v

    @property
    def usage(self) -> str:
        flags = ", ".join(self.flags)
        if self.arity == "required":
            return f"{flags} <{self.metavar or self.dest}>"
        if self.arity == "optional":
            return f"{flags} [{self.metavar or self.dest}]"
        return flags


class DatabaseType(str, Enum):
    """Database engines shed can fetch"""

    MYSQL = "mysql"
    POSTGRES = "postgres"


class Invocation(BaseModel):
    """The command line of one run, captured once"""

    model_config = ConfigDict(frozen=True)

    tokens: Tuple[str, ...] = Field(description="Arguments after the program path")
    command: Optional[str] = Field(default=None, description="Subcommand token")
    remainder: Tuple[str, ...] = Field(
        default=(), description="Tokens with the subcommand removed"
    )
    cli_values: dict[str, Any] = Field(default_factory=dict)
    version: bool = Field(default=False)
    home: Path = Field(default=SHED_HOME, description="Directory for shed state")


class CommandSpec(BaseModel):
    """One row of the dispatch table"""

    model_config = ConfigDict(frozen=True)

    name: str
    target: Target
    command: Tuple[str, ...] = Field(default=())
    prepend_name: bool = Field(
        default=False, description="Forward the subcommand name as a literal arg"
    )
    container: Optional[str] = Field(
        default=None, description="Container forced regardless of --container"
    )
    help: str = Field(default="")

    @model_validator(mode="after")
    def validate_target(self) -> "CommandSpec":
        if self.target == "container" and not self.command:
            raise ValueError(f"{self.name}: container commands need a command")
        if self.target == "compose" and self.container is not None:
            raise ValueError(f"{self.name}: compose commands cannot force a container")
        return self


# ============================================================================
# Configuration
# ============================================================================


class ShedSettings(BaseSettings):
    """File and environment layers of the configuration"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SHED_",
        case_sensitive=False,
        extra="ignore",
    )

    sites: Optional[Path] = Field(default=None, description="Sites directory")
    docroot: str = Field(default="public", description="Docroot folder")
    log_level: str = Field(default="INFO", description="Logging level")
    container: str = Field(default="apache", description="Default container")
    port: int = Field(default=80, description="Host port for the web container")
    config: Optional[Path] = Field(
        default=None, description="Config file, only read from env vars and .env"
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """
        Customize settings sources priority.
        Priority: env vars > .env file > YAML (init) > file secrets > defaults
        """
        return env_settings, dotenv_settings, init_settings, file_secret_settings


class ShedOptions(BaseModel):
    """Resolved global options, immutable for the whole run"""

    model_config = ConfigDict(frozen=True)

    sites: Path = Field(default_factory=Path.cwd, description="Sites directory")
    docroot: str = Field(default="public", description="Docroot folder")
    log_level: str = Field(default="INFO", description="Logging level")
    container: str = Field(default="apache", description="Target container")
    config: Path = Field(default=DEFAULT_CONFIG_PATH, description="Config file")
    port: int = Field(default=80, ge=1, le=65535, description="Web port")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept any case, store upper case"""
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Log level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("docroot", "container")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Value must not be empty")
        return v

    @classmethod
    def resolve(
        cls,
        cli_values: dict[str, Any],
        file_values: Optional[dict[str, Any]] = None,
    ) -> "ShedOptions":
        """Overlay command line values on the settings layers.

        Priority: command line > env vars > .env file > YAML > defaults
        """
        file_values = {
            key: value
            for key, value in (file_values or {}).items()
            if key != "config"
        }
        settings = ShedSettings(**file_values)
        values = settings.model_dump(exclude_none=True)
        values.update(cli_values)
        return cls(**values)

    def with_container(self, container: Optional[str]) -> "ShedOptions":
        """Return a copy targeting another container"""
        if container is None or container == self.container:
            return self
        return self.model_copy(update={"container": container})


# Keys the config command may read and persist
CONFIG_KEYS = ("sites", "docroot", "log_level", "container", "port")
