# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
A macro expansion engine supporting controlled recursion through
per-macro redefinition stacks.
"""
from recmacro.errors import (
    ArityMismatch,
    ConfigError,
    EmptyRedefinitionStack,
    ExpansionBudgetExceeded,
    ExpansionDepthExceeded,
    ExpansionError,
    ParseError,
    TokenError,
    UnterminatedInvocation,
)
from recmacro.expander import ExpansionContext, MacroExpander
from recmacro.macros import (
    Macro,
    MacroFunction,
    MacroTable,
    macro_from_definition_string,
    make_macro,
)
from recmacro.preprocessor import Preprocessor
from recmacro.redefinition import RedefinitionStack

__version__ = "1.0.0"

__all__ = [
    "ArityMismatch",
    "ConfigError",
    "EmptyRedefinitionStack",
    "ExpansionBudgetExceeded",
    "ExpansionContext",
    "ExpansionDepthExceeded",
    "ExpansionError",
    "Macro",
    "MacroExpander",
    "MacroFunction",
    "MacroTable",
    "ParseError",
    "Preprocessor",
    "RedefinitionStack",
    "TokenError",
    "UnterminatedInvocation",
    "macro_from_definition_string",
    "make_macro",
]
