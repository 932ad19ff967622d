"""
Flag set registry behavioral tests (declare, lookup, visit, set, reset, usage).

Scope
- Validate declaration: defaults snapshot, redefinition and shortname faults.
- Validate the formal/actual bookkeeping through visit_all(), visit() and set().
- Validate reset() and the positional accessors.
- Validate typed helpers (including attribute binding) and usage rendering.

Conventions
- Test method names follow CamelCase per project convention.
- Rich output is captured from the shared stderr console.
"""

from __future__ import annotations

import unittest
from types import SimpleNamespace
from unittest import TestCase

from gnuflag import (
    FlagSet,
    Flag,
    IntValue,
    StringValue,
    FlagRedefinedError,
    InvalidShortNameError,
    DeclarationError,
    FaultCode,
)
from gnuflag.faults import console


class TestDeclare(TestCase):
    """Behavioral tests for FlagSet.declare()."""

    def setUp(self):
        self.flags = FlagSet("tool")

    def testReturnsFlagWithDefaultSnapshot(self):
        flag = self.flags.declare("level", "l", IntValue(3), "compression level")
        self.assertIsInstance(flag, Flag)
        self.assertEqual(flag.name, "level")
        self.assertEqual(flag.shortname, "l")
        self.assertEqual(flag.usage, "compression level")
        self.assertEqual(flag.default, "3")
        self.assertEqual(flag.default, str(flag.value))

    def testDefaultSnapshotSurvivesSet(self):
        flag = self.flags.declare("level", "l", IntValue(3), "")
        self.assertTrue(self.flags.set("level", "9"))
        self.assertEqual(flag.default, "3")
        self.assertEqual(str(flag.value), "9")

    def testRedefinitionRaises(self):
        self.flags.declare("level", "", IntValue(), "")
        with self.assertRaises(FlagRedefinedError) as context:
            self.flags.declare("level", "", IntValue(), "")
        self.assertIsInstance(context.exception, DeclarationError)
        self.assertIsInstance(context.exception, ValueError)
        self.assertEqual(context.exception.message, "flag redefined: level")
        self.assertIs(context.exception.options["code"], FaultCode.FLAG_REDEFINED)

    def testEmptyShortnameMeansNone(self):
        self.assertIsNone(self.flags.declare("a", "", IntValue(), "").shortname)
        self.assertIsNone(self.flags.declare("b", None, IntValue(), "").shortname)
        self.assertEqual(self.flags.shortnames, {})

    def testShortnameMustBeOneCodepoint(self):
        for shortname in ("ab", "\udcff", b"\xff", b"ab"):
            with self.assertRaises(InvalidShortNameError):
                self.flags.declare("name", shortname, IntValue(), "")
        self.assertIsNone(self.flags.lookup("name"))

    def testShortnameFromUtf8Bytes(self):
        flag = self.flags.declare("uber", "ü".encode(), IntValue(), "")
        self.assertEqual(flag.shortname, "ü")
        self.assertEqual(self.flags.shortnames, {"ü": "uber"})

    def testShortnameRepointed(self):
        self.flags.declare("first", "x", IntValue(), "")
        self.flags.declare("second", "x", IntValue(), "")
        self.assertEqual(self.flags.shortnames["x"], "second")

    def testArgumentTypes(self):
        with self.assertRaises(TypeError):
            self.flags.declare(1, "", IntValue(), "")
        with self.assertRaises(ValueError):
            self.flags.declare("", "", IntValue(), "")
        with self.assertRaises(TypeError):
            self.flags.declare("level", "", 3, "")
        with self.assertRaises(TypeError):
            self.flags.declare("level", 3, IntValue(), "")


class TestRegistry(TestCase):
    """Behavioral tests for lookup/visit/set/reset and positional accessors."""

    def setUp(self):
        self.flags = FlagSet("tool")
        self.flags.bool("test_bool", "", False, "bool value")
        self.flags.int("test_int", "", 0, "int value")
        self.flags.int32("test_int32", "", 0, "int32 value")
        self.flags.uint("test_uint", "", 0, "uint value")
        self.flags.uint32("test_uint32", "", 0, "uint32 value")
        self.flags.string("test_string", "", "0", "string value")
        self.flags.float("test_float", "", 0, "float value")
        self.flags.float32("test_float32", "", 0, "float32 value")
        self.names = {
            "test_bool", "test_int", "test_int32", "test_uint",
            "test_uint32", "test_string", "test_float", "test_float32",
        }

    def testVisitAllSeesEveryFlagOnce(self):
        seen = []
        self.flags.visit_all(lambda flag: seen.append(flag.name))
        self.assertEqual(len(seen), 8)
        self.assertEqual(set(seen), self.names)

    def testVisitAllReportsDefaults(self):
        texts = {}
        self.flags.visit_all(lambda flag: texts.update({flag.name: str(flag.value)}))
        self.assertEqual(texts["test_bool"], "false")
        self.assertEqual(texts["test_int"], "0")
        self.assertEqual(texts["test_string"], "0")
        self.assertEqual(texts["test_float"], "0.0")

    def testVisitSeesNothingBeforeSet(self):
        seen = []
        self.flags.visit(seen.append)
        self.assertEqual(seen, [])
        self.assertEqual(self.flags.nflag(), 0)

    def testVisitAfterSettingEverything(self):
        for name in self.names:
            self.assertTrue(self.flags.set(name, "1"), name)
        texts = {}
        self.flags.visit(lambda flag: texts.update({flag.name: str(flag.value)}))
        self.assertEqual(set(texts), self.names)
        self.assertEqual(texts["test_bool"], "true")
        self.assertEqual(texts["test_uint32"], "1")
        self.assertEqual(texts["test_float32"], "1.0")
        self.assertEqual(self.flags.nflag(), 8)

    def testSetUnknownFlag(self):
        self.assertFalse(self.flags.set("missing", "1"))
        self.assertEqual(self.flags.nflag(), 0)

    def testSetRejectedValueIsNotRecorded(self):
        self.assertFalse(self.flags.set("test_int", "one"))
        self.assertEqual(self.flags.actual, {})
        self.assertEqual(self.flags.lookup("test_int").value.value, 0)

    def testSetTwiceIsAllowed(self):
        self.assertTrue(self.flags.set("test_int", "1"))
        self.assertTrue(self.flags.set("test_int", "2"))
        self.assertEqual(self.flags.lookup("test_int").value.value, 2)
        self.assertEqual(self.flags.nflag(), 1)

    def testLookup(self):
        self.assertEqual(self.flags.lookup("test_string").usage, "string value")
        self.assertIsNone(self.flags.lookup("nope"))

    def testViewsAreCopies(self):
        self.flags.formal.clear()
        self.flags.arguments.append("x")
        self.assertEqual(len(self.flags.formal), 8)
        self.assertEqual(self.flags.narg(), 0)

    def testResetEmptiesEverything(self):
        self.flags.set("test_int", "4")
        self.flags.parse(["tool", "positional"])
        self.assertEqual(self.flags.narg(), 1)
        self.flags.reset()
        self.assertEqual(len(self.flags.formal), 0)
        self.assertEqual(self.flags.nflag(), 0)
        self.assertEqual(self.flags.narg(), 0)
        self.assertEqual(self.flags.shortnames, {})
        self.flags.reset()
        self.assertEqual(len(self.flags.formal), 0)

    def testResetForgetsProgramButKeepsFallback(self):
        flags = FlagSet(shell=False)
        faults = []
        flags.fallback(faults.append)
        flags.parse(["first"])
        self.assertEqual(flags.program, "first")
        flags.reset()
        self.assertNotEqual(flags.program, "first")
        flags.parse(["second", "--nope"])
        self.assertEqual(flags.program, "second")
        self.assertEqual(len(faults), 1)

    def testRedeclareAfterReset(self):
        self.flags.reset()
        value = self.flags.int("test_int", "i", 5, "")
        self.assertEqual(value.value, 5)

    def testPositionalAccessors(self):
        self.flags.parse(["tool", "a", "b"])
        self.assertEqual(self.flags.narg(), 2)
        self.assertEqual(self.flags.arg(0), "a")
        self.assertEqual(self.flags.arg(1), "b")
        self.assertEqual(self.flags.arg(2), "")
        self.assertEqual(self.flags.arg(-1), "")
        self.assertEqual(self.flags.args(), ["a", "b"])


class TestTypedHelpers(TestCase):
    """Behavioral tests for the typed declaration helpers."""

    def testHelpersReturnValueHolders(self):
        flags = FlagSet("tool")
        output = flags.string("output", "o", "a.out", "")
        self.assertIsInstance(output, StringValue)
        flags.parse(["tool", "-o", "b.out"])
        self.assertEqual(output.value, "b.out")

    def testWidths(self):
        flags = FlagSet("tool")
        self.assertEqual(flags.int("a", "", 0, "").bits, 64)
        self.assertEqual(flags.int32("b", "", 0, "").bits, 32)
        self.assertEqual(flags.uint("c", "", 0, "").bits, 64)
        self.assertEqual(flags.uint32("d", "", 0, "").bits, 32)
        self.assertEqual(flags.float("e", "", 0.0, "").bits, 64)
        self.assertEqual(flags.float32("f", "", 0.0, "").bits, 32)

    def testVarHelpersBindAttributes(self):
        options = SimpleNamespace()
        flags = FlagSet("tool")
        flags.bool_var(options, "verbose", "verbose", "v", False, "")
        flags.int_var(options, "level", "level", "l", 1, "")
        flags.int32_var(options, "depth", "depth", "", 2, "")
        flags.uint_var(options, "size", "size", "", 3, "")
        flags.uint32_var(options, "jobs", "jobs", "j", 4, "")
        flags.string_var(options, "output", "output", "o", "", "")
        flags.float_var(options, "ratio", "ratio", "", 0.5, "")
        flags.float32_var(options, "scale", "scale", "", 1.0, "")
        self.assertEqual(vars(options), {
            "verbose": False, "level": 1, "depth": 2, "size": 3,
            "jobs": 4, "output": "", "ratio": 0.5, "scale": 1.0,
        })
        flags.parse(["tool", "-vl9", "--ratio=0.25", "-oout", "--jobs", "8"])
        self.assertTrue(options.verbose)
        self.assertEqual(options.level, 9)
        self.assertEqual(options.ratio, 0.25)
        self.assertEqual(options.output, "out")
        self.assertEqual(options.jobs, 8)


class TestUsage(TestCase):
    """Behavioral tests for usage() and print_defaults()."""

    def setUp(self):
        self.flags = FlagSet("tool")
        self.flags.bool("verbose", "v", False, "talk more")
        self.flags.string("output", "", "", "output file")
        self.flags.float("ratio", "r", 0.5, "ratio")

    def testPrintDefaults(self):
        with console.capture() as capture:
            self.flags.print_defaults()
        self.assertEqual(capture.get().splitlines(), [
            "  -v, --verbose=false: talk more",
            '      --output="": output file',
            "  -r, --ratio=0.5: ratio",
        ])

    def testUsageLineFirst(self):
        with console.capture() as capture:
            self.flags.usage()
        lines = capture.get().splitlines()
        self.assertEqual(lines[0], "Usage: tool [OPTION]... [ARGS]")
        self.assertEqual(len(lines), 4)

    def testCustomTemplate(self):
        flags = FlagSet("tool", "usage: %s [flags] files...")
        with console.capture() as capture:
            flags.usage()
        self.assertEqual(capture.get().splitlines(), ["usage: tool [flags] files..."])

    def testTemplateNeedsOnePlaceholder(self):
        with self.assertRaises(ValueError):
            FlagSet("tool", "no placeholder")
        with self.assertRaises(ValueError):
            FlagSet("tool", "%s %s")

    def testProgramFromFirstToken(self):
        flags = FlagSet()
        flags.parse(["./runner"])
        self.assertEqual(flags.program, "./runner")

    def testStringDefaultsEscaped(self):
        flags = FlagSet("tool")
        flags.string("quote", "", 'say "hi"', "")
        with console.capture() as capture:
            flags.print_defaults()
        self.assertEqual(capture.get().strip(), '--quote="say \\"hi\\"":')


if __name__ == '__main__':
    unittest.main()
