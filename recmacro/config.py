# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains functions and classes for loading and validating expansion
configuration files.

A configuration file is TOML with a single [expansion] table:

    [expansion]
    max_steps = 10000
    max_depth = 200
    combinators = true
    defines = ["INC(x)=x + 1"]
"""
from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field, fields
from typing import Any

from recmacro.errors import ConfigError
from recmacro.expander import DEFAULT_MAX_DEPTH, DEFAULT_MAX_STEPS

log = logging.getLogger(__name__)


def _check_limit(name: str, value: Any) -> int | None:
    if value is None:
        return None
    # bool is a subclass of int, but is never a sensible limit
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{name}' must be an integer.")
    if value < 1:
        raise ConfigError(f"'{name}' must be positive.")
    return value


@dataclass
class ExpansionConfig:
    """
    Stores the settings of an expansion session.
    """

    max_steps: int | None = DEFAULT_MAX_STEPS
    max_depth: int | None = DEFAULT_MAX_DEPTH
    combinators: bool = True
    defines: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.max_steps = _check_limit("max_steps", self.max_steps)
        self.max_depth = _check_limit("max_depth", self.max_depth)
        if not isinstance(self.combinators, bool):
            raise ConfigError("'combinators' must be a boolean.")
        if not isinstance(self.defines, list) or not all(
            isinstance(d, str) for d in self.defines
        ):
            raise ConfigError("'defines' must be a list of strings.")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExpansionConfig:
        """
        Construct an ExpansionConfig from the contents of an [expansion]
        table.

        Raises
        ------
        ConfigError
            If `data` contains unknown keys or invalid values.
        """
        if not isinstance(data, dict):
            raise ConfigError("'expansion' must be a table.")
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(
                f"Unrecognized expansion options: {sorted(unknown)}",
            )
        return cls(**data)


def load_config(path: str | os.PathLike[str]) -> ExpansionConfig:
    """
    Load an ExpansionConfig from a TOML file.

    Parameters
    ----------
    path: str | os.PathLike[str]
        The file to load.

    Returns
    -------
    ExpansionConfig
        The settings in the file's [expansion] table, or the defaults if
        the table is absent.

    Raises
    ------
    ConfigError
        If the file is not valid TOML or has invalid contents.
    """
    log.info(f"Loading configuration from {path}")
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse {path}: {e}") from e

    unknown = set(data) - {"expansion"}
    if unknown:
        log.warning(f"Ignoring unrecognized tables in {path}: {sorted(unknown)}")
    return ExpansionConfig.from_dict(data.get("expansion", {}))
