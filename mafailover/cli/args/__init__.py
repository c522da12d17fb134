# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/cli/args/__init__.py
"""
Argument parsing for the mafailover CLI.
"""
from __future__ import annotations

from .builder import HelpFormatter, _build_epilog
from .helpers import _credentials, _merged_get, _merged_secret, _require
from .parser import _build_preparser, _load_merged_config, build_parser, parse_args_with_config
from .validators import validate_args

__all__ = [
    "HelpFormatter",
    "_build_epilog",
    "_credentials",
    "_merged_get",
    "_merged_secret",
    "_require",
    "_build_preparser",
    "_load_merged_config",
    "build_parser",
    "parse_args_with_config",
    "validate_args",
]
