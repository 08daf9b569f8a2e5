# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the RedefinitionStack class, which saves and restores macro
definitions in the manner of push_macro/pop_macro pragmas.
"""
from __future__ import annotations

import collections
import logging

from recmacro.errors import EmptyRedefinitionStack
from recmacro.macros import Macro, MacroTable

log = logging.getLogger(__name__)


class RedefinitionStack:
    """
    Represents a stack of saved definitions for each macro name.

    A restore reinstalls the saved definition as a new binding. A macro
    body that saves and immediately restores its own name therefore
    rebinds it, and a later self-reference in the same body is no longer
    hidden by the binding that is currently expanding.
    """

    def __init__(self, table: MacroTable) -> None:
        if not isinstance(table, MacroTable):
            raise TypeError("'table' must be a MacroTable.")
        self.table = table
        self._stacks: dict[str, list[Macro | None]] = collections.defaultdict(
            list,
        )

    def push(self, name: str) -> None:
        """
        Save the current definition of `name`, which may be undefined.

        Parameters
        ----------
        name: str
            The name of the macro to save.
        """
        macro = self.table.lookup(name)
        self._stacks[name].append(macro)
        log.debug(f"Saved {name} (depth {len(self._stacks[name])})")

    def pop(self, name: str) -> None:
        """
        Reinstall the most recently saved definition of `name`.

        Parameters
        ----------
        name: str
            The name of the macro to restore.

        Raises
        ------
        EmptyRedefinitionStack
            If there is no saved definition for `name`.
        """
        stack = self._stacks.get(name)
        if not stack:
            raise EmptyRedefinitionStack(
                f"No saved definition of {name} to restore.",
                identifier=name,
            )
        macro = stack.pop()
        if not stack:
            del self._stacks[name]
        self.table.install(name, macro)
        log.debug(f"Restored {name} as {self.table.binding(name)}")

    def depth(self, name: str) -> int:
        """
        Returns
        -------
        int
            The number of saved definitions for `name`.
        """
        return len(self._stacks.get(name, []))

    def snapshot(self) -> dict[str, list[Macro | None]]:
        """
        Return a copy of every stack, for use with rollback().
        """
        return {name: list(stack) for name, stack in self._stacks.items()}

    def rollback(self, snapshot: dict[str, list[Macro | None]]) -> None:
        """
        Reinstate the stacks captured by snapshot().
        """
        self._stacks = collections.defaultdict(list)
        for name, stack in snapshot.items():
            self._stacks[name] = list(stack)
