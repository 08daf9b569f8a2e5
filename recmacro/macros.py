# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains classes and functions that define:
- Object-like and function-like macro definitions
- Argument substitution, stringizing and token pasting
- The table of active macro bindings
"""
from __future__ import annotations

import itertools
import logging
import typing
from collections.abc import Iterable

from recmacro.errors import ParseError
from recmacro.tokens import (
    ARG_SEPARATOR,
    CONTROL_KEYWORDS,
    GROUP_CLOSE,
    GROUP_OPEN,
    Binding,
    Identifier,
    Lexer,
    NumericalConstant,
    Operator,
    Punctuator,
    Token,
    _representation_string,
)

log = logging.getLogger(__name__)

VA_ARGS = "__VA_ARGS__"
VA_OPT = "__VA_OPT__"


class _Placemarker:
    """
    Stands in for an empty argument next to a ## operator.
    """

    def __repr__(self) -> str:
        return "<placemarker>"


_PLACEMARKER = _Placemarker()
_PASTE = Operator("EXPANSION", -1, False, "##")


class DefinitionParser:
    """
    A generic token parser for matching the parts of a macro definition.
    """

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    def cursor(self) -> Token:
        """
        Return the current token in the list.
        """
        try:
            return self.tokens[self.pos]
        except IndexError:
            raise ParseError("No tokens left for cursor to traverse")

    def eol(self) -> bool:
        """
        Return True when the end of the list is reached.
        """
        return self.pos >= len(self.tokens)

    def match_type(self, token_type: type) -> Token:
        """
        Match a token of the specified type and advance position.
        """
        token = self.cursor()
        if not isinstance(token, token_type):
            raise ParseError(f"Expected {token_type.__name__}.")
        self.pos += 1
        return token

    def match_value(self, token_type: type, token_value: str) -> Token:
        """
        Match a token of the specified type and value, and advance
        position.
        """
        token = self.cursor()
        if not isinstance(token, token_type) or token.token != token_value:
            raise ParseError(f"Expected {token_value!s}.")
        self.pos += 1
        return token

    def parameter(self) -> str:
        """
        Match a parameter name, a named variadic parameter or '...'.

        <param> := <identifier>'...'? | '...'
        """
        if self.cursor().is_punctuator("..."):
            self.pos += 1
            return "..."

        name = self.match_type(Identifier).token
        if not self.eol() and self.cursor().is_punctuator("..."):
            self.pos += 1
            return name + "..."
        return name

    def parameter_list(self) -> list[str]:
        """
        Match a comma-separated list of parameters up to, and including,
        the closing parenthesis.

        <param-list> := '(' [<param>[','<param>]*]? ')'
        """
        self.match_value(Punctuator, GROUP_OPEN)
        params: list[str] = []
        if self.cursor().is_punctuator(GROUP_CLOSE):
            self.pos += 1
            return params

        while True:
            param = self.parameter()
            params.append(param)
            if param.endswith("..."):
                self.match_value(Punctuator, GROUP_CLOSE)
                return params
            if self.cursor().is_punctuator(GROUP_CLOSE):
                self.pos += 1
                return params
            self.match_value(Punctuator, ARG_SEPARATOR)

    def macro_definition(self) -> tuple[Identifier, list[str] | None]:
        """
        Match a macro name and optional parameter list.
        Return a tuple of the Identifier and parameter list (or None).
        """
        name = typing.cast(Identifier, self.match_type(Identifier))

        # Whitespace is NOT permitted before the opening paren of a
        # function-like macro.
        if (
            not self.eol()
            and self.cursor().is_punctuator(GROUP_OPEN)
            and not self.cursor().prev_white
        ):
            return (name, self.parameter_list())
        return (name, None)


def macro_from_definition_string(string: str) -> Macro:
    """
    Construct a Macro or MacroFunction by parsing a string of the form
    MACRO=expansion or MACRO(args)=expansion.
    A definition without "=" expands to 1.
    """
    tokens = Lexer(string).tokenize()
    parser = DefinitionParser(tokens)
    (name, params) = parser.macro_definition()

    # Any remaining tokens after an "=" are the macro expansion
    if not parser.eol():
        parser.match_value(Operator, "=")
        replacement = parser.tokens[parser.pos :]
    else:
        replacement = [NumericalConstant("Unknown", -1, False, "1")]

    return make_macro(name.token, params, replacement)


def macro_from_directive(tokens: list[Token]) -> Macro:
    """
    Construct a Macro from the tokens following a define directive, of
    the form: MACRO(args) expansion.
    """
    parser = DefinitionParser(tokens)
    (name, params) = parser.macro_definition()
    return make_macro(name.token, params, parser.tokens[parser.pos :])


def make_macro(
    name: str,
    params: list[str] | None,
    replacement: Iterable[Token],
) -> Macro:
    """
    Return a Macro or MacroFunction based on the contents of params.
    """
    if params is None:
        return Macro(name, list(replacement))
    return MacroFunction(name, params, list(replacement))


def _paste(lhs: Token, rhs: Token) -> Token:
    """
    Concatenate two tokens into a single new token.
    """
    spelling = str(lhs) + str(rhs)
    tokens = Lexer(spelling, lhs.line).tokenize()
    if len(tokens) != 1:
        raise ParseError(f"Invalid concatenation: {spelling}")
    return tokens[0].with_white(lhs.prev_white)


def _perform_pastes(
    items: list[Token | _Placemarker],
) -> list[Token]:
    """
    Resolve ## operators in a substituted replacement list.
    """
    result: list[Token | _Placemarker] = []
    idx = 0
    while idx < len(items):
        item = items[idx]
        if item is _PASTE:
            if not result or idx + 1 == len(items):
                raise ParseError("## is missing an operand")
            lhs = result.pop()
            rhs = items[idx + 1]
            if lhs is _PLACEMARKER:
                result.append(rhs)
            elif rhs is _PLACEMARKER:
                result.append(lhs)
            else:
                result.append(
                    _paste(
                        typing.cast(Token, lhs),
                        typing.cast(Token, rhs),
                    ),
                )
            idx += 2
            continue
        result.append(item)
        idx += 1
    return [t for t in result if isinstance(t, Token)]


class Macro:
    """
    Represents an object-like macro definition.
    """

    def __init__(self, name: str, replacement: list[Token]) -> None:
        if not isinstance(name, str):
            raise TypeError("'name' must be a string.")
        self.name = name
        self.replacement = list(replacement)

        if len(self.replacement) > 0:
            if self.replacement[0].token == "##":
                raise ParseError("Found ## operator at start of replacement")
            if self.replacement[-1].token == "##":
                raise ParseError("Found ## operator at end of replacement")
            self.replacement[0] = self.replacement[0].with_white(False)
        self.preproc_replacement()

    @property
    def params(self) -> list[str] | None:
        return None

    def which_arg(self, tok: Token) -> int:
        """
        Returns index of the parameter named by tok. -1 if not found.
        """
        return -1

    def preproc_replacement(self) -> None:
        """
        Convert control sequences into Control tokens and mark the paste
        operators of the replacement list.
        """
        res_tokens: list[Token] = []
        idx = 0
        while idx < len(self.replacement):
            tok = self.replacement[idx]
            if isinstance(tok, Identifier) and tok.token in CONTROL_KEYWORDS:
                window = self.replacement[idx : idx + 4]
                if (
                    len(window) < 4
                    or not window[1].is_punctuator(GROUP_OPEN)
                    or not isinstance(window[2], Identifier)
                    or not window[3].is_punctuator(GROUP_CLOSE)
                ):
                    raise ParseError(
                        f"{tok.token} in {self.name} must be followed by "
                        + "a parenthesized macro name.",
                    )
                control_type = CONTROL_KEYWORDS[tok.token]
                res_tokens.append(
                    control_type(
                        tok.line,
                        tok.col,
                        tok.prev_white,
                        window[2].token,
                    ),
                )
                idx += 4
                continue
            if isinstance(tok, Operator) and tok.token == "##":
                tok = _PASTE
            res_tokens.append(tok)
            idx += 1
        self.replacement = res_tokens

        # Pastes between literal tokens can be resolved once, up front.
        if self.params is None and any(t is _PASTE for t in self.replacement):
            self.replacement = _perform_pastes(list(self.replacement))

    def __repr__(self) -> str:
        return _representation_string(self, attrs=["name", "replacement"])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Macro):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.name == other.name
            and self.params == other.params
            and [(type(t), t.token) for t in self.replacement]
            == [(type(t), t.token) for t in other.replacement]
        )

    __hash__ = None  # type: ignore[assignment]

    def spelling(self) -> list[str]:
        """
        Return (a list containing) a string with a lexable representation of
        this Macro.
        """
        replacement_str = " ".join([str(t) for t in self.replacement])
        return [f"{self.name!s}={replacement_str!s}"]

    def replace(self, args: list[list[Token]] | None = None) -> list[Token]:
        """
        Return the expansion list for this Macro.
        """
        if args:
            raise ValueError("Macro expected 0 arguments.")
        return list(self.replacement)


class MacroFunction(Macro):
    """
    Represents a function-like macro definition.
    """

    def __init__(
        self,
        name: str,
        params: list[str],
        replacement: list[Token],
    ) -> None:
        self.args = list(params)
        self.variadic = len(self.args) > 0 and self.args[-1].endswith("...")
        if self.variadic:
            if self.args[-1] == "...":
                # An unnamed variable argument replaces __VA_ARGS__
                self.args[-1] = VA_ARGS
            else:
                # Strip '...' from argument name
                self.args[-1] = self.args[-1][:-3]
        if len(set(self.args)) != len(self.args):
            raise ParseError(f"Duplicate parameter name in {name}.")
        if any(a.endswith("...") for a in self.args):
            raise ParseError(f"Only the last parameter of {name} may be variadic.")
        super().__init__(name, replacement)
        self.validate()

    @property
    def params(self) -> list[str] | None:
        return self.args

    def which_arg(self, tok: Token) -> int:
        """
        Returns index of the parameter named by tok. -1 if not found.
        """
        if not isinstance(tok, Identifier):
            return -1
        try:
            return self.args.index(tok.token)
        except ValueError:
            return -1

    def validate(self) -> None:
        """
        Check the use of # and __VA_OPT__ in the replacement list.
        """
        for idx, tok in enumerate(self.replacement):
            if isinstance(tok, Operator) and tok.token == "#":
                if idx + 1 == len(self.replacement) or (
                    self.which_arg(self.replacement[idx + 1]) == -1
                ):
                    raise ParseError(
                        f"# in {self.name} was not followed by a macro "
                        + "parameter.",
                    )
            elif isinstance(tok, Identifier) and tok.token == VA_OPT:
                if not self.variadic:
                    raise ParseError(
                        f"{VA_OPT} may only appear in a variadic macro.",
                    )
                self._group_end(self.replacement, idx + 1)

    def _group_end(self, tokens: list[Token], start: int) -> int:
        """
        Return the index of the parenthesis closing the group opened at
        `start`.
        """
        if start >= len(tokens) or not tokens[start].is_punctuator(GROUP_OPEN):
            raise ParseError(f"{VA_OPT} must be followed by '('.")
        depth = 0
        for idx in range(start, len(tokens)):
            if tokens[idx].is_punctuator(GROUP_OPEN):
                depth += 1
            elif tokens[idx].is_punctuator(GROUP_CLOSE):
                depth -= 1
                if depth == 0:
                    return idx
        raise ParseError(f"Unterminated {VA_OPT} in {self.name}.")

    def __repr__(self) -> str:
        return _representation_string(
            self,
            attrs=["name", "args", "replacement"],
        )

    def spelling(self) -> list[str]:
        """
        Return the string representation of this macro in the input code.
        Useful primarily for debugging and generating error messages.
        """
        replacement_str = " ".join([str(t) for t in self.replacement])
        args = list(self.args)
        if self.variadic:
            args[-1] = "..." if args[-1] == VA_ARGS else args[-1] + "..."
        arg_str = ",".join(args)
        return [f"{self.name!s}({arg_str!s})={replacement_str!s}"]

    def accepts(self, count: int) -> bool:
        """
        Return True if an invocation with `count` arguments is valid.
        The trailing variadic argument may be omitted entirely.
        """
        if self.variadic:
            return count >= len(self.args) - 1
        return count == len(self.args)

    def bind(self, args: list[list[Token]]) -> list[list[Token]]:
        """
        Combine variadic arguments into one, separated by commas.
        """
        if not self.variadic:
            return args
        fixed = len(self.args) - 1
        trailing: list[Token] = []
        for idx, arg in enumerate(args[fixed:]):
            if idx > 0:
                trailing.append(Punctuator("EXPANSION", -1, False, ARG_SEPARATOR))
            trailing.extend(arg)
        return args[:fixed] + [trailing]

    def replace(self, args: list[list[Token]] | None = None) -> list[Token]:
        """
        Return the substituted replacement for this macro.
        `args` holds the raw, unexpanded argument token lists, one per
        parameter; see bind().
        """
        args = args or []
        if len(args) != len(self.args):
            raise ValueError(
                f"{self.name} expected {len(self.args)} arguments.",
            )
        substituted = self._substitute(0, len(self.replacement), args)
        return _perform_pastes(substituted)

    def _substitute(
        self,
        start: int,
        end: int,
        args: list[list[Token]],
    ) -> list[Token | _Placemarker]:
        res: list[Token | _Placemarker] = []
        idx = start
        while idx < end:
            tok = self.replacement[idx]

            if isinstance(tok, Operator) and tok.token == "#":
                idx += 1
                arg = args[self.which_arg(self.replacement[idx])]
                res.append(Lexer.stringify(arg).with_white(tok.prev_white))
                idx += 1
                continue

            if isinstance(tok, Identifier) and tok.token == VA_OPT:
                close = self._group_end(self.replacement, idx + 1)
                if args[-1]:
                    res.extend(self._substitute(idx + 2, close, args))
                else:
                    res.append(_PLACEMARKER)
                idx = close + 1
                continue

            arg_idx = self.which_arg(tok)
            if arg_idx != -1:
                arg = args[arg_idx]
                if arg:
                    res.append(arg[0].with_white(tok.prev_white))
                    res.extend(arg[1:])
                else:
                    res.append(_PLACEMARKER)
                idx += 1
                continue

            res.append(tok)
            idx += 1
        return res


class MacroTable:
    """
    Maps macro names to their active bindings.
    Each install produces a fresh Binding, so that a definition that has
    been saved and restored is distinguishable from the one it replaced.
    """

    def __init__(self) -> None:
        self._definitions: dict[str, tuple[Binding, Macro]] = {}
        self._serial = itertools.count(1)

    def define(self, macro: Macro) -> None:
        """
        Define a macro, overwriting any existing definition.

        Parameters
        ----------
        macro: Macro
            The macro to define.
        """
        if not isinstance(macro, Macro):
            raise TypeError("'macro' must be a Macro.")
        binding = Binding(macro.name, next(self._serial))
        self._definitions[macro.name] = (binding, macro)

    def undefine(self, name: str) -> None:
        """
        Undefine a previously defined macro. Has no effect if `name` is
        not defined.
        """
        self._definitions.pop(name, None)

    def install(self, name: str, macro: Macro | None) -> None:
        """
        Install `macro` as the definition of `name`, or undefine `name`
        if `macro` is None.
        """
        if macro is None:
            self.undefine(name)
        else:
            self.define(macro)

    def lookup(self, name: str) -> Macro | None:
        """
        Returns
        -------
        Macro | None
            The macro associated with `name`, or None.
        """
        entry = self._definitions.get(name)
        return entry[1] if entry else None

    def entry(self, name: str) -> tuple[Binding, Macro] | None:
        """
        Return the active (Binding, Macro) pair for `name`, or None.
        """
        return self._definitions.get(name)

    def binding(self, name: str) -> Binding | None:
        """
        Returns
        -------
        Binding | None
            The active Binding of `name`, or None if undefined.
        """
        entry = self._definitions.get(name)
        return entry[0] if entry else None

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def snapshot(self) -> dict[str, tuple[Binding, Macro]]:
        """
        Return a copy of the current bindings, for use with rollback().
        """
        return dict(self._definitions)

    def rollback(self, snapshot: dict[str, tuple[Binding, Macro]]) -> None:
        """
        Reinstate the bindings captured by snapshot().
        """
        log.debug(f"Rolling back macro table to {len(snapshot)} bindings")
        self._definitions = dict(snapshot)
