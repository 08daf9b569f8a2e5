# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the Preprocessor class, the control surface of an expansion
session.
"""
from __future__ import annotations

import logging

from recmacro import combinators
from recmacro.config import ExpansionConfig
from recmacro.expander import DEFAULT_MAX_DEPTH, DEFAULT_MAX_STEPS, MacroExpander
from recmacro.macros import Macro, MacroTable, macro_from_definition_string
from recmacro.redefinition import RedefinitionStack
from recmacro.tokens import Token, spell, tokenize

log = logging.getLogger(__name__)


class Preprocessor:
    """
    Represents a single expansion session, including:
    - Active macro definitions
    - Saved definitions for each macro name
    - The expansion step budget

    Sessions share no state, so independent sessions may be used from
    different threads.
    """

    def __init__(
        self,
        *,
        defines: list[str] | None = None,
        max_steps: int | None = DEFAULT_MAX_STEPS,
        max_depth: int | None = DEFAULT_MAX_DEPTH,
        combinators: bool = True,
    ) -> None:
        for name, limit in [("max_steps", max_steps), ("max_depth", max_depth)]:
            if limit is None:
                continue
            if isinstance(limit, bool) or not isinstance(limit, int):
                raise TypeError(f"'{name}' must be an integer.")
            if limit < 1:
                raise ValueError(f"'{name}' must be positive.")

        self._table = MacroTable()
        self._stack = RedefinitionStack(self._table)
        self._expander = MacroExpander(
            self._table,
            self._stack,
            max_steps=max_steps,
            max_depth=max_depth,
        )

        if combinators:
            self._install_combinators()

        if defines is None:
            pass
        elif not isinstance(defines, list) or not all(
            [isinstance(d, str) for d in defines],
        ):
            raise TypeError("'defines' must be a list of strings.")
        else:
            for definition in defines:
                self.define(macro_from_definition_string(definition))

    @classmethod
    def from_config(cls, config: ExpansionConfig) -> Preprocessor:
        """
        Construct a Preprocessor from an ExpansionConfig.
        """
        return cls(
            defines=config.defines,
            max_steps=config.max_steps,
            max_depth=config.max_depth,
            combinators=config.combinators,
        )

    def _install_combinators(self) -> None:
        combinators.install(self._table)

    @property
    def max_steps(self) -> int | None:
        """
        The maximum number of substitutions performed by one call to
        expand(), or None for no limit.
        """
        return self._expander.max_steps

    @max_steps.setter
    def max_steps(self, value: int | None) -> None:
        if value is not None:
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError("'max_steps' must be an integer.")
            if value < 1:
                raise ValueError("'max_steps' must be positive.")
        self._expander.max_steps = value

    def define(self, macro: Macro) -> None:
        """
        Define a macro, as if the preprocessor encountered #define.
        Replaces any existing definition.

        Parameters
        ----------
        macro: Macro
            The macro to define.
        """
        log.debug(f"Defining {macro.spelling()[0]}")
        self._table.define(macro)

    def undefine(self, name: str) -> None:
        """
        Undefine a previously defined macro. Has no effect if the macro
        is not defined.

        Parameters
        ----------
        name: str
            The name of the macro.
        """
        self._table.undefine(name)

    def get_macro(self, name: str) -> Macro | None:
        """
        Returns
        -------
        Macro | None
            The macro associated with `name`, or None.
        """
        return self._table.lookup(name)

    def has_macro(self, name: str) -> bool:
        """
        Returns
        -------
        bool
            True if `name` is defined and False otherwise.
        """
        return name in self._table

    def saved_definitions(self, name: str) -> int:
        """
        Returns
        -------
        int
            The number of definitions of `name` saved on its
            redefinition stack.
        """
        return self._stack.depth(name)

    def expand(self, tokens: list[Token]) -> list[Token]:
        """
        Expand `tokens` using the active definitions.

        Raises
        ------
        ExpansionError
            If expansion fails. The session's definitions are left as
            they were before the call.
        """
        return self._expander.expand(tokens)

    def expand_string(self, string: str, line: int | str = "Unknown") -> str:
        """
        Tokenize `string`, expand it, and return the spelling of the
        result.
        """
        return spell(self.expand(tokenize(string, line)))
