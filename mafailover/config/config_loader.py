# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# mafailover/config/config_loader.py
"""
YAML/JSON run configuration.

Config files hold the same settings as the command line (cluster address,
credentials user names, password environment variable names, polling knobs).
Keys are normalised to argparse dest names and applied as parser defaults, so
anything given on the command line wins. Later files override earlier ones.
"""

from __future__ import annotations

import argparse
import glob
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

from ..core.exceptions import Fatal

CONFIG_SUFFIXES = (".yaml", ".yml", ".json")


def _norm_key(key: Any) -> str:
    return str(key).strip().lstrip("-").replace("-", "_")


class Config:
    @staticmethod
    def expand_configs(logger: logging.Logger, paths: List[str]) -> List[Path]:
        """
        Resolve --config values: `~` and env vars are expanded, globs are
        expanded (sorted), a directory contributes its *.yaml/*.yml/*.json.
        Duplicates keep their first position.
        """
        out: List[Path] = []
        for raw in paths:
            s = os.path.expandvars(os.path.expanduser(str(raw)))
            if any(ch in s for ch in "*?["):
                matches = sorted(glob.glob(s))
                if not matches:
                    raise Fatal(code=2, msg=f"Config glob matched nothing: {raw}")
                candidates = [Path(m) for m in matches]
            else:
                candidates = [Path(s)]

            for p in candidates:
                if p.is_dir():
                    found = sorted(x for x in p.iterdir() if x.suffix.lower() in CONFIG_SUFFIXES)
                    logger.debug("Config directory %s: %d file(s)", p, len(found))
                    items = found
                else:
                    items = [p]
                for item in items:
                    if item not in out:
                        out.append(item)
        return out

    @staticmethod
    def load_one(logger: logging.Logger, path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise Fatal(code=2, msg=f"Config file not found: {path}")
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise Fatal(code=2, msg=f"Cannot read config {path}: {e}", cause=e) from e

        try:
            if path.suffix.lower() == ".json":
                data = json.loads(text) if text.strip() else {}
            else:
                data = yaml.safe_load(text)
        except (yaml.YAMLError, ValueError) as e:
            raise Fatal(code=2, msg=f"Invalid config {path}: {e}", cause=e) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise Fatal(code=2, msg=f"Config {path} must contain a mapping (got {type(data).__name__})")

        logger.debug("Loaded config %s (%d key(s))", path, len(data))
        return {_norm_key(k): v for k, v in data.items()}

    @staticmethod
    def merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Shallow for scalars/lists, recursive for nested mappings."""
        out = dict(base)
        for k, v in override.items():
            if isinstance(v, dict) and isinstance(out.get(k), dict):
                out[k] = Config.merge(out[k], v)
            else:
                out[k] = v
        return out

    @staticmethod
    def load_many(logger: logging.Logger, paths: List[Path]) -> Dict[str, Any]:
        conf: Dict[str, Any] = {}
        for p in paths:
            conf = Config.merge(conf, Config.load_one(logger, p))
        return conf

    @staticmethod
    def apply_as_defaults(logger: logging.Logger, parser: argparse.ArgumentParser, conf: Dict[str, Any]) -> None:
        """
        Push config values into parser defaults. Unknown keys are ignored
        with a warning so typos are visible without aborting the run.
        """
        if not conf:
            return
        known = {a.dest for a in parser._actions}
        defaults: Dict[str, Any] = {}
        for k, v in conf.items():
            if k in known:
                defaults[k] = v
            else:
                logger.warning("Ignoring unknown config key: %s", k)
        if defaults:
            parser.set_defaults(**defaults)
            logger.debug("Applied %d config default(s): %s", len(defaults), ", ".join(sorted(defaults)))
