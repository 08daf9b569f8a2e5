# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the exceptions raised while tokenizing, defining and expanding
macros.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from recmacro.tokens import Token


class TokenError(ValueError):
    """
    Represents an error encountered during tokenization.
    """


class ParseError(ValueError):
    """
    Represents an error encountered while parsing a macro definition.
    """


class ConfigError(ValueError):
    """
    Represents an invalid expansion configuration.
    """


class ExpansionError(ValueError):
    """
    Represents a fatal error encountered during macro expansion.

    Parameters
    ----------
    message: str
        A description of the failure.

    identifier: str | None
        The macro name involved, if any.

    token: Token | None
        The token at the call site, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        identifier: str | None = None,
        token: Token | None = None,
    ) -> None:
        self.identifier = identifier
        self.token = token
        if token is not None:
            message = f"{message} (line {token.line}, column {token.col})"
        super().__init__(message)


class ArityMismatch(ExpansionError):
    """
    Represents a function-like macro invoked with the wrong number of
    arguments.
    """


class EmptyRedefinitionStack(ExpansionError):
    """
    Represents a restore with no matching prior save.
    """


class UnterminatedInvocation(ExpansionError):
    """
    Represents a function-like macro invocation missing its closing
    parenthesis.
    """


class ExpansionBudgetExceeded(ExpansionError):
    """
    Represents an expansion that performed more substitutions than the
    configured budget allows. Usually indicates runaway recursion, but
    may be retried with a larger budget.
    """

    def __init__(
        self,
        message: str,
        *,
        budget: int,
        identifier: str | None = None,
        token: Token | None = None,
    ) -> None:
        self.budget = budget
        super().__init__(message, identifier=identifier, token=token)


class ExpansionDepthExceeded(ExpansionBudgetExceeded):
    """
    Represents MacroExpander overflow: too many nested invocations were
    active at once.
    """
