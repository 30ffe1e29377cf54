#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (c) 2026 plumiume
# SPDX-License-Identifier: MIT
# License: MIT License (https://opensource.org/licenses/MIT)
# See LICENSE.txt for details.

"""
Local development wrapper around docker compose.
"""

from .args import OptionRegistry, raw_command_args, split_command
from .commands import COMMANDS, GLOBAL_OPTIONS, __version__, app, main
from .manager import ShedEnvironment
from .models import (
    CommandSpec,
    DatabaseType,
    Invocation,
    OptionSpec,
    ShedOptions,
    ShedSettings,
)

__all__ = [
    # Commands
    "app",
    "main",
    "COMMANDS",
    "GLOBAL_OPTIONS",
    "__version__",
    # Arguments
    "OptionRegistry",
    "raw_command_args",
    "split_command",
    # Environment
    "ShedEnvironment",
    # Models
    "CommandSpec",
    "DatabaseType",
    "Invocation",
    "OptionSpec",
    "ShedOptions",
    "ShedSettings",
]
