# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains classes that define:
- Tokens consumed and produced by the macro expander
- Hide sets recording the expansion ancestry of each token
- A small lexer used for definition strings and the command-line driver
"""
from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from recmacro.errors import TokenError

GROUP_OPEN = "("
GROUP_CLOSE = ")"
ARG_SEPARATOR = ","


def _representation_string(
    obj: Any,
    *,
    name: str | None = None,
    attrs: list[str] | None = None,
) -> str:
    """
    Helper function to build representation strings of the form:
    Name(attribute={attribute!r},...)
    """
    if not name:
        name = obj.__class__.__name__
    if not attrs:
        attrs = list(obj.__dict__)
    properties = ",".join(f"{a}={getattr(obj, a)!r}" for a in attrs)
    return f"{name}({properties})"


@dataclass(frozen=True, order=True)
class Binding:
    """
    Represents one installation of a macro definition under a name.

    Every define, and every reinstatement from a redefinition stack,
    produces a new Binding with a fresh serial number. Hide sets record
    Bindings rather than bare names, so a definition that has been
    saved and restored is distinct from the one that was expanding.
    """

    name: str
    serial: int

    def __str__(self) -> str:
        return f"{self.name}#{self.serial}"


class HideSet:
    """
    An immutable set of Bindings attached to a token.

    Stamping an expansion computes one HideSet per distinct input set,
    so tokens that shared a set before an expansion share one after it.
    """

    __slots__ = ("_members",)

    def __init__(self, members: Iterable[Binding] = ()) -> None:
        self._members = frozenset(members)

    def __contains__(self, item: object) -> bool:
        return item in self._members

    def __iter__(self) -> Iterator[Binding]:
        return iter(sorted(self._members))

    def __len__(self) -> int:
        return len(self._members)

    def __bool__(self) -> bool:
        return bool(self._members)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HideSet):
            return NotImplemented
        return self._members == other._members

    def __hash__(self) -> int:
        return hash(self._members)

    def __repr__(self) -> str:
        inner = ",".join(str(b) for b in self)
        return f"HideSet({{{inner}}})"

    def union(self, *others: HideSet) -> HideSet:
        """
        Return a HideSet containing the members of this set and `others`.
        Avoids allocating when nothing new is added.
        """
        members = self._members
        for other in others:
            if other._members and not other._members <= members:
                members = members | other._members
        if members is self._members:
            return self
        return HideSet(members)

    def add(self, binding: Binding) -> HideSet:
        """
        Return a HideSet extended with `binding`.
        """
        if binding in self._members:
            return self
        return HideSet(self._members | {binding})

    def names(self) -> set[str]:
        """
        Returns
        -------
        set[str]
            The macro names recorded in this set.
        """
        return {b.name for b in self._members}


EMPTY_HIDESET = HideSet()


@dataclass(frozen=True)
class Token:
    """
    Represents a token consumed or produced by the expander.
    Tokens are immutable; stamping a new hide set returns a copy.
    """

    line: int | str
    col: int
    prev_white: bool
    token: str
    hideset: HideSet = field(default=EMPTY_HIDESET, compare=False)

    def __str__(self) -> str:
        return "\n".join(self.spelling())

    def spelling(self) -> list[str]:
        """
        Return the string representation of this token in the input code.
        Useful primarily for debugging and generating error messages.
        """
        return [str(self.token)]

    def sanitized_str(self) -> str:
        """
        Dummy based implementation of string sanitization.
        Overloaded for string and character constants.
        """
        return str(self)

    def stamp(self, hideset: HideSet) -> Token:
        """
        Return a copy of this token carrying `hideset`.
        """
        if hideset is self.hideset:
            return self
        return dataclasses.replace(self, hideset=hideset)

    def with_white(self, prev_white: bool) -> Token:
        """
        Return a copy of this token with the requested leading spacing.
        """
        if prev_white == self.prev_white:
            return self
        return dataclasses.replace(self, prev_white=prev_white)

    def is_punctuator(self, value: str) -> bool:
        return isinstance(self, Punctuator) and self.token == value


@dataclass(frozen=True)
class CharacterConstant(Token):
    """
    Represents a character constant.
    """

    def spelling(self) -> list[str]:
        return [f"'{self.token!s}'"]

    def sanitized_str(self) -> str:
        """
        Return this constant quoted for stringification.
        """
        escaped = self.token.replace("\\", "\\\\").replace('"', '\\"')
        return f"'{escaped}'"


@dataclass(frozen=True)
class NumericalConstant(Token):
    """
    Represents a 'preprocessing number'.
    The expander never evaluates these.
    """


@dataclass(frozen=True)
class StringConstant(Token):
    """
    Represents a string constant.
    """

    def spelling(self) -> list[str]:
        return [f'"{self.token!s}"']

    def sanitized_str(self) -> str:
        """
        Return this string quoted for stringification.
        """
        escaped = self.token.replace("\\", "\\\\").replace('"', '\\"')
        return f'\\"{escaped}\\"'


@dataclass(frozen=True)
class Identifier(Token):
    """
    Represents an identifier; the only kind of token that can name a
    macro.
    """


@dataclass(frozen=True)
class Operator(Token):
    """
    Represents an operator.
    """


@dataclass(frozen=True)
class Punctuator(Token):
    """
    Represents a punctuator, including the structural markers used for
    invocations: group open, group close and argument separator.
    """


@dataclass(frozen=True)
class Unknown(Token):
    """
    Represents an unknown token.
    """


@dataclass(frozen=True)
class Control(Token):
    """
    Represents a redefinition-stack control token.
    `token` holds the name of the macro acted upon. Control tokens are
    consumed by the expander and never appear in its output.
    """

    def spelling(self) -> list[str]:
        return [f"{self.keyword}({self.token})"]

    @property
    def keyword(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class SaveMacro(Control):
    """
    Saves the current definition of a macro onto its redefinition stack.
    """

    @property
    def keyword(self) -> str:
        return SAVE_KEYWORD


@dataclass(frozen=True)
class RestoreMacro(Control):
    """
    Reinstates the most recently saved definition of a macro.
    """

    @property
    def keyword(self) -> str:
        return RESTORE_KEYWORD


SAVE_KEYWORD = "__save__"
RESTORE_KEYWORD = "__restore__"
CONTROL_KEYWORDS: dict[str, type[Control]] = {
    SAVE_KEYWORD: SaveMacro,
    RESTORE_KEYWORD: RestoreMacro,
}


def identifier(name: str, *, line: int | str = "Unknown") -> Identifier:
    """
    Construct a bare Identifier, for building token lists by hand.
    """
    return Identifier(line, -1, False, name)


def punctuator(value: str, *, line: int | str = "Unknown") -> Punctuator:
    """
    Construct a bare Punctuator, for building token lists by hand.
    """
    return Punctuator(line, -1, False, value)


def spell(tokens: Iterable[Token]) -> str:
    """
    Return the text of a token sequence, honoring recorded whitespace.
    """
    parts: list[str] = []
    for tok in tokens:
        if parts and tok.prev_white:
            parts.append(" ")
        parts.append(str(tok))
    return "".join(parts)


class Lexer:
    """
    A lexer for C-like macro text.
    """

    OPERATORS = [
        "||",
        "&&",
        ">>",
        "<<",
        "!=",
        ">=",
        "<=",
        "==",
        "##",
        "->",
        "++",
        "--",
        "-",
        "+",
        "!",
        "*",
        "/",
        "|",
        "&",
        "^",
        "<",
        ">",
        "?",
        ":",
        "~",
        "#",
        "=",
        "%",
    ]
    PUNCTUATORS = [
        "...",
        "(",
        ")",
        "{",
        "}",
        "[",
        "]",
        ",",
        ".",
        ";",
        "\\",
    ]

    def __init__(self, string: str, line: int | str = "Unknown") -> None:
        self.string = string
        self.line = line
        self.pos = 0
        self.prev_white = False

    def read(self, n: int = 1) -> str:
        """
        Return the next n characters in the string.
        """
        return self.string[self.pos : self.pos + n]

    def eos(self) -> bool:
        """
        Return True when the end of the string is reached.
        """
        return self.pos >= len(self.string)

    def whitespace(self) -> None:
        """
        Consume whitespace and advance position.
        """
        while not self.eos() and self.read().isspace():
            self.pos += 1
            self.prev_white = True

    def match_any(self, literals: list[str]) -> str:
        """
        Match one from a list of literals exactly.
        Return the matched literal and advance position.
        """
        for literal in literals:
            if self.read(len(literal)) == literal:
                self.pos += len(literal)
                return literal
        raise TokenError(f"Expected one of {literals!r}.")

    def number(self) -> NumericalConstant:
        """
        Construct a NumericalConstant by parsing a string.

        <number> := .?<digit>[<alpha>|<digit>|'_'|'.'|<exponent>]*
        """
        col = self.pos
        if self.read() == "." and self.read(2)[1:].isdigit():
            self.pos += 1
        if not self.read().isdigit():
            self.pos = col
            raise TokenError("Invalid preprocessing number.")

        exponents = ["e+", "e-", "E+", "E-", "p+", "p-", "P+", "P-"]
        while not self.eos():
            if self.read(2) in exponents:
                self.pos += 2
            elif self.read().isalnum() or self.read() in ["_", "."]:
                self.pos += 1
            else:
                break

        value = self.string[col : self.pos]
        return NumericalConstant(self.line, col, self.prev_white, value)

    def quoted(self, quote: str) -> str:
        """
        Consume a quoted literal and return its contents, keeping escape
        sequences intact.
        """
        col = self.pos
        if self.read() != quote:
            raise TokenError(f"Expected {quote}.")
        self.pos += 1
        chars = []
        while not self.eos() and self.read() != quote:
            if self.read() == "\\" and len(self.read(2)) == 2:
                chars.append(self.read(2))
                self.pos += 2
            else:
                chars.append(self.read())
                self.pos += 1
        if self.eos():
            self.pos = col
            raise TokenError(f"Unterminated {quote}-quoted literal.")
        self.pos += 1
        return "".join(chars)

    def character_constant(self) -> CharacterConstant:
        col = self.pos
        value = self.quoted("'")
        return CharacterConstant(self.line, col, self.prev_white, value)

    def string_constant(self) -> StringConstant:
        col = self.pos
        value = self.quoted('"')
        return StringConstant(self.line, col, self.prev_white, value)

    @staticmethod
    def stringify(tokens: list[Token]) -> StringConstant:
        """
        Return a StringConstant spelling out an input series of tokens.
        """
        parts = []
        for p in tokens:
            if parts and p.prev_white:
                parts.append(" ")
            parts.append(p.sanitized_str())
        return StringConstant("EXPANSION", -1, False, "".join(parts))

    def identifier(self) -> Identifier:
        """
        Construct an Identifier by parsing a string.

        <identifier> := [<alpha>|'_'][<alpha>|<digit>|'_']*
        """
        col = self.pos
        if not (self.read().isalpha() or self.read() == "_"):
            raise TokenError("Invalid identifier.")
        while not self.eos() and (self.read().isalnum() or self.read() == "_"):
            self.pos += 1
        value = self.string[col : self.pos]
        return Identifier(self.line, col, self.prev_white, value)

    def operator(self) -> Operator:
        col = self.pos
        value = self.match_any(Lexer.OPERATORS)
        return Operator(self.line, col, self.prev_white, value)

    def punctuator(self) -> Punctuator:
        col = self.pos
        value = self.match_any(Lexer.PUNCTUATORS)
        return Punctuator(self.line, col, self.prev_white, value)

    def tokenize_one(self) -> Token | None:
        """
        Consume and return next token. Returns None if not possible.
        """
        candidates = [
            self.number,
            self.character_constant,
            self.string_constant,
            self.identifier,
            self.operator,
            self.punctuator,
        ]
        for f in candidates:
            col = self.pos
            try:
                token = f()
            except TokenError:
                self.pos = col
                continue
            self.prev_white = False
            return token
        return None

    def tokenize(self) -> list[Token]:
        """
        Return a list of all tokens in the string.
        """
        tokens: list[Token] = []
        self.whitespace()
        while not self.eos():
            token = self.tokenize_one()

            # Treat unmatched single characters as unknown tokens
            if token is None:
                token = Unknown(
                    self.line,
                    self.pos,
                    self.prev_white,
                    self.read(),
                )
                self.prev_white = False
                self.pos += 1
            tokens.append(token)

            self.whitespace()

        return tokens


def tokenize(string: str, line: int | str = "Unknown") -> list[Token]:
    """
    Convenience wrapper around Lexer.tokenize.
    """
    return Lexer(string, line).tokenize()
