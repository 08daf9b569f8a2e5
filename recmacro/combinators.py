# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the standard combinator library: macros built only from the
expander's primitives.

MAP(f, items...) applies the function-like macro f to each item, in
order, separating the results with commas. Its non-empty helper
recurses on itself by saving and restoring its own name before each
self-reference; an empty item list is the base case.
"""
from __future__ import annotations

from collections.abc import Iterable

from recmacro.macros import Macro, MacroTable, macro_from_definition_string
from recmacro.tokens import (
    ARG_SEPARATOR,
    GROUP_CLOSE,
    GROUP_OPEN,
    Token,
    identifier,
    punctuator,
)

MAP = "MAP"
MAP_NONEMPTY = "MAP_NONEMPTY"

DEFINITIONS = [
    f"{MAP}(f, ...)=__VA_OPT__({MAP_NONEMPTY}(f, __VA_ARGS__))",
    f"{MAP_NONEMPTY}(f, x, ...)=f(x) __VA_OPT__(, "
    + f"__save__({MAP_NONEMPTY}) __restore__({MAP_NONEMPTY}) "
    + f"{MAP_NONEMPTY}(f, __VA_ARGS__))",
]


def macros() -> list[Macro]:
    """
    Returns
    -------
    list[Macro]
        Fresh definitions of every combinator.
    """
    return [macro_from_definition_string(d) for d in DEFINITIONS]


def install(table: MacroTable) -> None:
    """
    Define every combinator in `table`, replacing existing definitions.
    """
    for macro in macros():
        table.define(macro)


def invocation(name: str, args: Iterable[Iterable[Token]]) -> list[Token]:
    """
    Build the tokens of a call to the function-like macro `name`.
    """
    tokens: list[Token] = [identifier(name), punctuator(GROUP_OPEN)]
    for idx, arg in enumerate(args):
        if idx > 0:
            tokens.append(punctuator(ARG_SEPARATOR))
        tokens.extend(arg)
    tokens.append(punctuator(GROUP_CLOSE))
    return tokens


def map_over_list(f: str, items: Iterable[Iterable[Token]]) -> list[Token]:
    """
    Build the tokens of MAP(f, items...).

    Parameters
    ----------
    f: str
        The name of a function-like macro taking one argument.

    items: Iterable[Iterable[Token]]
        The token sequences to map over.
    """
    return invocation(MAP, [[identifier(f)], *items])
