# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the MacroExpander class, which implements scan-and-rescan macro
expansion with hide sets, and the ExpansionContext used to track the
invocations currently being expanded.
"""
from __future__ import annotations

import collections
import logging
from dataclasses import dataclass

from recmacro.errors import (
    ArityMismatch,
    EmptyRedefinitionStack,
    ExpansionBudgetExceeded,
    ExpansionDepthExceeded,
    UnterminatedInvocation,
)
from recmacro.macros import Macro, MacroFunction, MacroTable
from recmacro.redefinition import RedefinitionStack
from recmacro.tokens import (
    ARG_SEPARATOR,
    EMPTY_HIDESET,
    GROUP_CLOSE,
    GROUP_OPEN,
    Binding,
    Control,
    HideSet,
    Identifier,
    RestoreMacro,
    SaveMacro,
    Token,
    spell,
)

log = logging.getLogger(__name__)

# Prevent runaway expansion. The step budget may be raised (or disabled with
# None) by the caller. Depth limiting is off unless requested.
DEFAULT_MAX_STEPS = 100_000
DEFAULT_MAX_DEPTH = None


@dataclass
class Frame:
    """
    Represents one macro invocation that is being expanded.
    `tail` is the number of queued tokens that follow its replacement.
    """

    name: str
    binding: Binding
    token: Token
    args: list[list[Token]]
    tail: int

    def __str__(self) -> str:
        where = f"line {self.token.line}, column {self.token.col}"
        if not self.args:
            return f"{self.name} ({where})"
        args = ", ".join(spell(arg) for arg in self.args)
        return f"{self.name}({args}) ({where})"


class ExpansionContext:
    """
    The stack of invocations currently being expanded.
    Used for diagnostics and to limit the nesting of invocations.
    """

    def __init__(self, max_depth: int | None = DEFAULT_MAX_DEPTH) -> None:
        self.max_depth = max_depth
        self.frames: list[Frame] = []

    def __len__(self) -> int:
        return len(self.frames)

    def retire(self, remaining: int) -> None:
        """
        Pop every frame whose replacement has been fully consumed, given
        that `remaining` tokens are left in the work queue.
        """
        while self.frames and remaining <= self.frames[-1].tail:
            self.frames.pop()

    def enter(self, frame: Frame) -> None:
        """
        Push a new invocation.

        Raises
        ------
        ExpansionDepthExceeded
            If this exceeds the maximum number of nested invocations.
        """
        self.frames.append(frame)
        if self.max_depth is not None and len(self.frames) > self.max_depth:
            raise ExpansionDepthExceeded(
                f"Exceeded {self.max_depth} nested macro invocations while "
                + f"expanding {frame.name}.",
                budget=self.max_depth,
                identifier=frame.name,
                token=frame.token,
            )

    def backtrace(self) -> list[str]:
        """
        Returns
        -------
        list[str]
            A description of each active invocation, outermost first.
        """
        return [str(frame) for frame in self.frames]


class MacroExpander:
    """
    A specialized token scanner for recognizing and expanding macros.

    Tokens are taken from the front of a work queue. Each substitution
    is pushed back onto the front of the queue, so that it is rescanned
    before anything following it.
    """

    def __init__(
        self,
        table: MacroTable,
        stack: RedefinitionStack | None = None,
        *,
        max_steps: int | None = DEFAULT_MAX_STEPS,
        max_depth: int | None = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.table = table
        self.stack = stack if stack is not None else RedefinitionStack(table)
        if self.stack.table is not table:
            raise ValueError("'stack' must operate on 'table'.")
        self.max_steps = max_steps
        self.max_depth = max_depth
        self.context = ExpansionContext(max_depth)
        self.steps = 0

    def expand(self, tokens: list[Token]) -> list[Token]:
        """
        Expand a list of input tokens using the active definitions.
        Return a list of new tokens, representing the result of macro
        expansion.

        If expansion fails, the macro table and redefinition stacks are
        returned to their state before the call and the error is raised.
        """
        table_snapshot = self.table.snapshot()
        stack_snapshot = self.stack.snapshot()
        self.context = ExpansionContext(self.max_depth)
        self.steps = 0
        try:
            return self._expand(tokens)
        except ValueError as e:
            log.debug(f"Expansion failed: {e}")
            for frame in self.context.backtrace():
                log.debug(f"  while expanding {frame}")
            self.table.rollback(table_snapshot)
            self.stack.rollback(stack_snapshot)
            raise

    def _expand(self, tokens: list[Token]) -> list[Token]:
        queue = collections.deque(tokens)
        output: list[Token] = []

        while queue:
            self.context.retire(len(queue))
            tok = queue.popleft()

            if isinstance(tok, Control):
                self.control(tok)
                continue

            entry = self.expandable(tok)
            if entry is None:
                output.append(tok.stamp(EMPTY_HIDESET))
                continue
            (binding, macro) = entry

            if isinstance(macro, MacroFunction):
                # A function-like macro name without an argument list is
                # not an invocation.
                if not queue or not queue[0].is_punctuator(GROUP_OPEN):
                    output.append(tok.stamp(EMPTY_HIDESET))
                    continue
                (args, close) = self.collect_arguments(tok, queue)
                args = self.check_arity(macro, tok, args)
                hideset = tok.hideset.union(close.hideset).add(binding)
                replacement = macro.replace(args)
            else:
                args = []
                hideset = tok.hideset.add(binding)
                replacement = macro.replace()

            self.count_step(tok)
            log.debug(f"Expanding {binding} at line {tok.line}")

            stamped = self.stamp(replacement, hideset, tok.prev_white)
            self.context.retire(len(queue))
            self.context.enter(
                Frame(tok.token, binding, tok, args, tail=len(queue)),
            )
            queue.extendleft(reversed(stamped))

        return output

    def expandable(self, tok: Token) -> tuple[Binding, Macro] | None:
        """
        Return the active (Binding, Macro) pair if `tok` is an identifier
        naming a macro whose binding is not in its hide set, else None.
        """
        if not isinstance(tok, Identifier):
            return None
        entry = self.table.entry(tok.token)
        if entry is None or entry[0] in tok.hideset:
            return None
        return entry

    def control(self, tok: Control) -> None:
        """
        Apply a save or restore control token.
        """
        if isinstance(tok, SaveMacro):
            self.stack.push(tok.token)
        elif isinstance(tok, RestoreMacro):
            try:
                self.stack.pop(tok.token)
            except EmptyRedefinitionStack as e:
                raise EmptyRedefinitionStack(
                    str(e),
                    identifier=tok.token,
                    token=tok,
                ) from e
        else:
            raise TypeError(f"Unrecognized control token {tok!r}.")

    def collect_arguments(
        self,
        name: Identifier,
        queue: collections.deque[Token],
    ) -> tuple[list[list[Token]], Token]:
        """
        Consume a parenthesized argument list from the front of `queue`.
        Return the raw arguments and the closing parenthesis.

        Raises
        ------
        UnterminatedInvocation
            If the queue is exhausted before the closing parenthesis.
        """
        queue.popleft()
        args: list[list[Token]] = []
        current_arg: list[Token] = []
        open_paren_count = 1

        while queue:
            tok = queue.popleft()

            if tok.is_punctuator(ARG_SEPARATOR) and open_paren_count == 1:
                args.append(current_arg)
                current_arg = []
                continue

            if tok.is_punctuator(GROUP_OPEN):
                open_paren_count += 1
            elif tok.is_punctuator(GROUP_CLOSE):
                open_paren_count -= 1
                if open_paren_count == 0:
                    args.append(current_arg)
                    return (args, tok)

            current_arg.append(tok)

        raise UnterminatedInvocation(
            f"Unterminated invocation of {name.token}.",
            identifier=name.token,
            token=name,
        )

    def check_arity(
        self,
        macro: MacroFunction,
        name: Identifier,
        args: list[list[Token]],
    ) -> list[list[Token]]:
        """
        Validate the argument count for `macro` and bind the arguments
        to its parameters.

        Raises
        ------
        ArityMismatch
            If the number of arguments is not accepted by `macro`.
        """
        # F() passes no arguments to a macro with no parameters
        if len(macro.args) == 0 and args == [[]]:
            args = []

        if not macro.accepts(len(args)):
            if macro.variadic:
                expected = f"at least {len(macro.args) - 1}"
            else:
                expected = f"{len(macro.args)}"
            raise ArityMismatch(
                f"{macro.name} expects {expected} argument(s), "
                + f"got {len(args)}.",
                identifier=macro.name,
                token=name,
            )
        return macro.bind(args)

    def count_step(self, tok: Identifier) -> None:
        """
        Record one substitution.

        Raises
        ------
        ExpansionBudgetExceeded
            If this exceeds the configured budget.
        """
        self.steps += 1
        if self.max_steps is not None and self.steps > self.max_steps:
            raise ExpansionBudgetExceeded(
                f"Exceeded {self.max_steps} macro expansions while "
                + f"expanding {tok.token}; the definition may not "
                + "terminate.",
                budget=self.max_steps,
                identifier=tok.token,
                token=tok,
            )

    @staticmethod
    def stamp(
        replacement: list[Token],
        hideset: HideSet,
        prev_white: bool,
    ) -> list[Token]:
        """
        Return `replacement` with `hideset` added to every token, and the
        spacing of the invocation carried onto the first token.

        Tokens that shared a hide set before stamping share a single
        HideSet object afterwards.
        """
        unions = {EMPTY_HIDESET: hideset}
        stamped = []
        for tok in replacement:
            result = unions.get(tok.hideset)
            if result is None:
                result = tok.hideset.union(hideset)
                unions[tok.hideset] = result
            stamped.append(tok.stamp(result))
        if stamped:
            stamped[0] = stamped[0].with_white(prev_white)
        return stamped
