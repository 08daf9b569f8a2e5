# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause

import logging
import unittest

from recmacro.errors import (
    ArityMismatch,
    EmptyRedefinitionStack,
    ExpansionBudgetExceeded,
    ExpansionDepthExceeded,
    UnterminatedInvocation,
)
from recmacro.expander import ExpansionContext, Frame, MacroExpander
from recmacro.macros import MacroTable, macro_from_definition_string
from recmacro.redefinition import RedefinitionStack
from recmacro.tokens import (
    Binding,
    Control,
    HideSet,
    SaveMacro,
    identifier,
    tokenize,
)


def values(tokens):
    return [t.token for t in tokens]


class TestMacroExpander(unittest.TestCase):
    """
    Test MacroExpander class.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def make_expander(self, *definitions, **kwargs):
        table = MacroTable()
        for definition in definitions:
            table.define(macro_from_definition_string(definition))
        return MacroExpander(table, **kwargs)

    def expand(self, text, *definitions, **kwargs):
        expander = self.make_expander(*definitions, **kwargs)
        return values(expander.expand(tokenize(text)))

    def test_undefined(self):
        """Check unknown identifiers pass through"""
        self.assertEqual(self.expand("a + b"), ["a", "+", "b"])
        self.assertEqual(self.expand(""), [])

    def test_object_like_chain(self):
        """Check chains of object-like macros"""
        expander = self.make_expander("A=B", "B=C x", "C=1")
        result = expander.expand(tokenize("A ; A"))
        self.assertEqual(values(result), ["1", "x", ";", "1", "x"])

        # Expanding the result again has no further effect
        self.assertEqual(expander.expand(result), result)

    def test_self_reference(self):
        """Check a macro does not re-trigger itself"""
        self.assertEqual(self.expand("A", "A=A"), ["A"])
        self.assertEqual(self.expand("A", "A=x A y"), ["x", "A", "y"])
        self.assertEqual(
            self.expand("F(1)", "F(x)=F(x)"),
            ["F", "(", "1", ")"],
        )

    def test_mutual_reference(self):
        """Check mutually referencing macros terminate"""
        self.assertEqual(self.expand("A", "A=B", "B=A"), ["A"])
        self.assertEqual(self.expand("B", "A=B", "B=A"), ["B"])

    def test_object_then_function(self):
        """Check a function-like macro named by an object-like macro"""
        self.assertEqual(
            self.expand("BAR(24)", "BAR=BAZ", "BAZ(x)=foo(x)"),
            ["foo", "(", "24", ")"],
        )

    def test_function_without_call(self):
        """Check a function-like macro name alone is not expanded"""
        self.assertEqual(self.expand("F + 1", "F(x)=x"), ["F", "+", "1"])
        self.assertEqual(self.expand("1 + F", "F(x)=x"), ["1", "+", "F"])

    def test_arguments_rescanned(self):
        """Check raw arguments are expanded after substitution"""
        self.assertEqual(self.expand("ID(ONE)", "ID(x)=x", "ONE=1"), ["1"])
        self.assertEqual(
            self.expand("TWICE(ONE)", "TWICE(x)=x x", "ONE=1"),
            ["1", "1"],
        )

    def test_arguments_unexpanded_when_stringized(self):
        """Check # sees the argument before expansion"""
        result = self.expand("STR(ONE)", "STR(x)=#x", "ONE=1")
        self.assertEqual(result, ["ONE"])

    def test_nested_parens(self):
        """Check commas inside nested groups do not split arguments"""
        self.assertEqual(
            self.expand("FIRST((1, 2), 3)", "FIRST(a, b)=a"),
            ["(", "1", ",", "2", ")"],
        )

    def test_call_completed_by_input(self):
        """Check a function name at the end of a body takes following input"""
        self.assertEqual(self.expand("G(2)", "G=F", "F(x)=[x]"), ["[", "2", "]"])

    def test_closing_paren_hideset(self):
        """Check a macro invoked from outer output cannot re-trigger it"""
        self.assertEqual(
            self.expand("f(2)(9)", "f(a)=a*g", "g(a)=f(a)"),
            ["2", "*", "f", "(", "9", ")"],
        )

    def test_arity_mismatch(self):
        """Check fixed-arity macros require the exact argument count"""
        with self.assertRaises(ArityMismatch) as cm:
            self.expand("ADD(1)", "ADD(a, b)=a + b")
        self.assertEqual(cm.exception.identifier, "ADD")
        self.assertEqual(cm.exception.token.token, "ADD")

        with self.assertRaises(ArityMismatch):
            self.expand("ADD(1, 2, 3)", "ADD(a, b)=a + b")

        with self.assertRaises(ArityMismatch):
            self.expand("V()", "V(a, b, ...)=a")

    def test_empty_arguments(self):
        """Check F() for zero and one parameter macros"""
        self.assertEqual(self.expand("F()", "F()=x"), ["x"])
        self.assertEqual(self.expand("F()", "F(a)=[a]"), ["[", "]"])
        with self.assertRaises(ArityMismatch):
            self.expand("F(1)", "F()=x")

    def test_variadic(self):
        """Check trailing arguments may be omitted or combined"""
        definition = "V(x, ...)=x __VA_OPT__(more: __VA_ARGS__)"
        self.assertEqual(self.expand("V(1)", definition), ["1"])
        self.assertEqual(
            self.expand("V(1, 2, 3)", definition),
            ["1", "more", ":", "2", ",", "3"],
        )
        self.assertEqual(self.expand("W()", "W(...)=[__VA_ARGS__]"), ["[", "]"])

    def test_unterminated(self):
        """Check a missing closing paren is reported"""
        with self.assertRaises(UnterminatedInvocation) as cm:
            self.expand("F(1, (2)", "F(x, y)=x")
        self.assertEqual(cm.exception.identifier, "F")

    def test_no_recursion_without_save(self):
        """Check a self-reference in a variadic body is not expanded"""
        self.assertEqual(
            self.expand("COUNT(a, b)", "COUNT(x, ...)=x COUNT(__VA_ARGS__)"),
            ["a", "COUNT", "(", "b", ")"],
        )

    def test_recursion(self):
        """Check save and restore allow a macro to expand itself"""
        definition = (
            "COUNT(x, ...)=x __VA_OPT__(__save__(COUNT) __restore__(COUNT) "
            + "COUNT(__VA_ARGS__))"
        )
        self.assertEqual(
            self.expand("COUNT(a, b, c, d)", definition),
            ["a", "b", "c", "d"],
        )

    def test_recursion_budget(self):
        """Check unconditional recursion hits the step budget"""
        expander = self.make_expander(
            "LOOP=__save__(LOOP) __restore__(LOOP) LOOP",
            max_steps=10,
        )
        binding = expander.table.binding("LOOP")
        with self.assertRaises(ExpansionBudgetExceeded) as cm:
            expander.expand(tokenize("LOOP"))
        self.assertEqual(cm.exception.budget, 10)
        self.assertEqual(cm.exception.identifier, "LOOP")
        self.assertEqual(expander.steps, 11)

        # Failed expansion leaves the definitions untouched
        self.assertEqual(expander.table.binding("LOOP"), binding)
        self.assertEqual(expander.stack.depth("LOOP"), 0)

    def test_budget_counts_substitutions(self):
        """Check the budget allows exactly max_steps substitutions"""
        expander = self.make_expander("A=B", "B=C", "C=D", max_steps=3)
        self.assertEqual(values(expander.expand(tokenize("A"))), ["D"])
        with self.assertRaises(ExpansionBudgetExceeded):
            expander.expand(tokenize("A A"))

        expander.max_steps = None
        self.assertEqual(values(expander.expand(tokenize("A A"))), ["D", "D"])

    def test_depth_limit(self):
        """Check nested recursion hits the depth limit"""
        with self.assertRaises(ExpansionDepthExceeded) as cm:
            self.expand(
                "NEST",
                "NEST=( __save__(NEST) __restore__(NEST) NEST )",
                max_depth=5,
            )
        self.assertIsInstance(cm.exception, ExpansionBudgetExceeded)
        self.assertEqual(cm.exception.budget, 5)

    def test_tail_recursion_depth(self):
        """Check recursion in tail position does not nest"""
        definition = (
            "COUNT(x, ...)=x __VA_OPT__(__save__(COUNT) __restore__(COUNT) "
            + "COUNT(__VA_ARGS__))"
        )
        items = [f"i{n}" for n in range(20)]
        result = self.expand(
            f"COUNT({', '.join(items)})",
            definition,
            max_depth=2,
        )
        self.assertEqual(result, items)

    def test_nested_recursion_default_depth(self):
        """Check deep nested recursion needs only the step budget"""
        definition = (
            "C(x, ...)=[ x __VA_OPT__(__save__(C) __restore__(C) "
            + "C(__VA_ARGS__)) ]"
        )
        items = [f"i{n}" for n in range(300)]
        result = self.expand(f"C({', '.join(items)})", definition)
        self.assertEqual(result[1::2][:300], items)
        self.assertEqual(result.count("["), 300)
        self.assertEqual(result[-300:], ["]"] * 300)

    def test_stamp_shares_hidesets(self):
        """Check tokens sharing a hide set still share one after stamping"""
        first = HideSet([Binding("A", 1)])
        second = HideSet([Binding("B", 2)])
        replacement = [
            identifier("x").stamp(first),
            identifier("y"),
            identifier("z").stamp(first),
            identifier("w").stamp(second),
            identifier("v"),
        ]
        hideset = HideSet([Binding("F", 3)])
        stamped = MacroExpander.stamp(replacement, hideset, False)

        self.assertIs(stamped[0].hideset, stamped[2].hideset)
        self.assertIs(stamped[1].hideset, hideset)
        self.assertIs(stamped[4].hideset, hideset)
        self.assertEqual(stamped[0].hideset, first.union(hideset))
        self.assertEqual(stamped[3].hideset, second.union(hideset))

    def test_empty_redefinition_stack(self):
        """Check restore without a save fails"""
        expander = self.make_expander("BAD=__restore__(BAD)")
        with self.assertRaises(EmptyRedefinitionStack) as cm:
            expander.expand(tokenize("x BAD"))
        self.assertEqual(cm.exception.identifier, "BAD")
        self.assertIn("BAD", expander.table)

    def test_rollback_on_error(self):
        """Check effects of a failed expansion are undone"""
        expander = self.make_expander(
            "SET=__save__(X) __restore__(X) __save__(X)",
            "ADD(a, b)=a",
            "X=1",
        )
        binding = expander.table.binding("X")
        with self.assertRaises(ArityMismatch):
            expander.expand(tokenize("SET ADD(1)"))
        self.assertEqual(expander.table.binding("X"), binding)
        self.assertEqual(expander.stack.depth("X"), 0)

        # Successful expansions keep their effects
        expander.expand(tokenize("SET"))
        self.assertEqual(expander.stack.depth("X"), 1)

    def test_control_tokens_consumed(self):
        """Check control tokens in the input are applied and removed"""
        expander = self.make_expander("X=1")
        tokens = [SaveMacro("Unknown", -1, False, "X"), identifier("X")]
        result = expander.expand(tokens)
        self.assertEqual(values(result), ["1"])
        self.assertFalse(any(isinstance(t, Control) for t in result))
        self.assertEqual(expander.stack.depth("X"), 1)

    def test_control_tokens_in_arguments(self):
        """Check control tokens are only applied when scanned"""
        expander = self.make_expander(
            "DROP(x)=",
            "KEEP(x)=x",
            "S=__save__(S)",
        )
        expander.expand(tokenize("DROP(S)"))
        self.assertEqual(expander.stack.depth("S"), 0)
        expander.expand(tokenize("KEEP(S)"))
        self.assertEqual(expander.stack.depth("S"), 1)

    def test_output_has_no_hidesets(self):
        """Check output tokens carry no expansion history"""
        expander = self.make_expander("A=x A", "F(y)=y F")
        result = expander.expand(tokenize("A F(1)"))
        self.assertEqual(values(result), ["x", "A", "1", "F"])
        self.assertTrue(all(not t.hideset for t in result))

    def test_spacing(self):
        """Check the invocation's spacing carries onto the replacement"""
        expander = self.make_expander("A=x y")
        result = expander.expand(tokenize("1 A"))
        self.assertEqual([t.prev_white for t in result], [False, True, True])

    def test_deterministic(self):
        """Check repeated expansions agree"""
        expander = self.make_expander(
            "COUNT(x, ...)=x __VA_OPT__(__save__(COUNT) __restore__(COUNT) "
            + "COUNT(__VA_ARGS__))",
        )
        first = values(expander.expand(tokenize("COUNT(1, 2, 3)")))
        second = values(expander.expand(tokenize("COUNT(1, 2, 3)")))
        self.assertEqual(first, second)

    def test_constructor_validation(self):
        """Check the stack must share the table"""
        with self.assertRaises(ValueError):
            MacroExpander(MacroTable(), RedefinitionStack(MacroTable()))


class TestExpansionContext(unittest.TestCase):
    """
    Test ExpansionContext class.
    """

    def make_frame(self, name, tail):
        return Frame(name, Binding(name, 1), identifier(name), [], tail)

    def test_retire(self):
        """Check frames are retired once their tokens are consumed"""
        context = ExpansionContext(max_depth=None)
        context.enter(self.make_frame("A", 0))
        context.enter(self.make_frame("B", 2))
        self.assertEqual(len(context), 2)

        context.retire(3)
        self.assertEqual(len(context), 2)
        context.retire(2)
        self.assertEqual(len(context), 1)
        context.retire(0)
        self.assertEqual(len(context), 0)

    def test_backtrace(self):
        """Check the backtrace lists active invocations"""
        context = ExpansionContext()
        frame = Frame(
            "F",
            Binding("F", 1),
            identifier("F"),
            [tokenize("a b"), []],
            0,
        )
        context.enter(frame)
        self.assertEqual(
            context.backtrace(),
            ["F(a b, ) (line Unknown, column -1)"],
        )

    def test_depth(self):
        """Check the depth limit"""
        context = ExpansionContext(max_depth=1)
        context.enter(self.make_frame("A", 0))
        with self.assertRaises(ExpansionDepthExceeded):
            context.enter(self.make_frame("B", 0))


if __name__ == "__main__":
    unittest.main()
