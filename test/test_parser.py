"""
Parser module behavioral tests (matching priority, faults, subcommands, usage, exit contract).

Scope
- Validate the per-token priority: separator, long switches, short switches, positionals, subcommands.
- Validate terminal faults: unmatched, ambiguous, unexpected, insufficient, unsatisfied, hook and
  subcommand failures, with their "parsing '<token>'" notes.
- Validate subcommand control flow: shared cursor, deferred actions, abort on first error.
- Validate usage output and the help outcome.
- Validate the main() exit contract.

Conventions
- Test method names follow CamelCase per project convention.
- Output is captured through rich consoles writing into StringIO buffers.
"""

from __future__ import annotations

import io
import unittest
from unittest import TestCase, mock

from rich.console import Console

from argosy import (
    AmbiguousMatchError,
    Choice,
    CoercionError,
    Context,
    Cursor,
    Helped,
    HookError,
    InsufficientArgumentsError,
    InvalidChoiceError,
    Parser,
    Slot,
    SubcommandError,
    UnexpectedArgumentError,
    UnmatchedSwitchError,
    UnsatisfiedParameterError,
    flag,
    main,
    option,
    parse,
    positional,
    subcommand,
)
from argosy import faults


def buffer():
    return Console(file=io.StringIO(), width=200)


class TestCursor(TestCase):
    """Token cursor."""

    def testAdvance(self):
        cursor = Cursor(["a", "b", "c"])
        self.assertEqual(cursor.peek(), "a")
        cursor.advance(2)
        self.assertEqual(cursor.remaining(), ("c",))
        self.assertEqual(len(cursor), 1)
        cursor.advance()
        self.assertFalse(cursor)

    def testAdvanceBounds(self):
        cursor = Cursor(["a"])
        with self.assertRaises(ValueError):
            cursor.advance(-1)
        with self.assertRaises(ValueError):
            cursor.advance(2)

    def testShellSplit(self):
        self.assertEqual(Cursor("--name 'two words'").remaining(), ("--name", "two words"))

    def testRejectsNonStrings(self):
        with self.assertRaises(TypeError):
            Cursor(["a", 1])


class TestFlags(TestCase):
    """Boolean switches and their negated spelling."""

    def testFlagSet(self):
        slot = Slot(bool)
        result = parse(["--flag"], flag("flag", slot))
        self.assertIsNone(result.error)
        self.assertTrue(result.ok)
        self.assertIs(slot.value, True)
        self.assertFalse(result.ran_subcommand)

    def testFlagFalseUntilMatched(self):
        slot = Slot(bool)
        self.assertTrue(parse([], flag("flag", slot)).ok)
        self.assertIs(slot.value, False)

    def testNegatedFlag(self):
        slot = Slot(bool, True)
        self.assertTrue(parse(["--no-flag"], flag("flag", slot)).ok)
        self.assertIs(slot.value, False)

    def testLastSpellingWins(self):
        slot = Slot(bool)
        self.assertTrue(parse(["--flag", "--no-flag"], flag("flag", slot)).ok)
        self.assertIs(slot.value, False)
        self.assertTrue(parse(["--no-flag", "--flag"], flag("flag", slot)).ok)
        self.assertIs(slot.value, True)

    def testSingleHyphenNegationIsUnmatched(self):
        result = parse(["-no-flag", "actual"], flag("flag"))
        self.assertIsInstance(result.error, UnmatchedSwitchError)
        self.assertEqual(result.error.token, "-no-flag")

    def testSingleHyphenNegationWithoutShorts(self):
        result = parse(["-no-flag", "actual"], flag("flag"), shorts=False)
        self.assertIsInstance(result.error, UnmatchedSwitchError)

    def testShortSwitch(self):
        slot = Slot(bool)
        self.assertTrue(parse(["-v"], flag("verbose", slot, short="v")).ok)
        self.assertIs(slot.value, True)

    def testShortSwitchDisabled(self):
        result = parse(["-v"], flag("verbose", short="v"), shorts=False)
        self.assertIsInstance(result.error, UnmatchedSwitchError)

    def testUnknownLongSwitch(self):
        result = parse(["--nope"], flag("flag"))
        self.assertIsInstance(result.error, UnmatchedSwitchError)
        self.assertIn("parsing '--nope'", result.error.__notes__)


class TestSeparator(TestCase):
    """The literal '--' separator."""

    def testSeparatorMakesSwitchesPositional(self):
        switch = Slot(bool)
        value = Slot(str)
        result = parse(["--", "-no-flag"], flag("flag", switch), positional("value", value))
        self.assertTrue(result.ok)
        self.assertEqual(value.value, "-no-flag")
        self.assertIs(switch.value, False)
        self.assertTrue(result.parser.positional_only)

    def testSecondSeparatorIsPositional(self):
        values = Slot(list[str])
        self.assertTrue(parse(["--", "--", "--flag"], positional("values", values)).ok)
        self.assertEqual(values.value, ["--", "--flag"])

    def testSeparatorWithoutPositionals(self):
        result = parse(["--", "-no-flag"], flag("flag"))
        self.assertIsInstance(result.error, UnexpectedArgumentError)

    def testLoneHyphenIsPositional(self):
        value = Slot(str)
        self.assertTrue(parse(["-"], positional("input", value)).ok)
        self.assertEqual(value.value, "-")


class TestOptions(TestCase):
    """Valued switches."""

    def testOptionConsumesNextToken(self):
        port = Slot(int)
        self.assertTrue(parse(["--port", "0x50"], option("port", port)).ok)
        self.assertEqual(port.value, 80)

    def testOptionValueMayLookLikeSwitch(self):
        text = Slot(str)
        self.assertTrue(parse(["--pattern", "--flag"], option("pattern", text)).ok)
        self.assertEqual(text.value, "--flag")

    def testMissingValue(self):
        result = parse(["--port"], option("port", int))
        self.assertIsInstance(result.error, InsufficientArgumentsError)
        self.assertIn("parsing '--port'", result.error.__notes__)

    def testBadValue(self):
        result = parse(["--port", "eighty"], option("port", int))
        self.assertIsInstance(result.error, CoercionError)
        self.assertEqual(result.error.token, "eighty")

    def testRequiredOptionUnsatisfied(self):
        port = option("port", int, required=True)
        result = parse([], port)
        self.assertIsInstance(result.error, UnsatisfiedParameterError)
        self.assertIs(result.error.parameter, port)
        self.assertEqual(str(result.error), "parameter not satisfied: port")

    def testRepeatedOption(self):
        tags = Slot(list[str])
        self.assertTrue(parse(["--tag", "a", "--tag", "b"], option("tag", tags)).ok)
        self.assertEqual(tags.value, ["a", "b"])

    def testChoice(self):
        choice = Choice("mode", {"fast": 1, "slow": 2})
        self.assertTrue(parse(["--mode", "slow"], choice).ok)
        self.assertEqual(choice.selected_value, 2)

    def testInvalidChoice(self):
        result = parse(["--mode", "medium"], Choice("mode", {"fast": 1, "slow": 2}))
        self.assertIsInstance(result.error, InvalidChoiceError)

    def testChoiceRequired(self):
        result = parse([], Choice("mode", {"fast": 1}))
        self.assertIsInstance(result.error, UnsatisfiedParameterError)


class TestPositionals(TestCase):
    """Position-matched values."""

    def testDeclarationOrder(self):
        source, target = Slot(str), Slot(str)
        self.assertTrue(parse(["a", "b"], positional("source", source), positional("target", target)).ok)
        self.assertEqual((source.value, target.value), ("a", "b"))

    def testTooManyTokens(self):
        result = parse(["a", "b", "c"], positional("source", str), positional("target", str))
        self.assertIsInstance(result.error, UnexpectedArgumentError)
        self.assertEqual(result.error.token, "c")

    def testOneOrMoreRequiresOne(self):
        result = parse([], positional("files", list[str]))
        self.assertIsInstance(result.error, UnsatisfiedParameterError)

    def testOneOrMoreAbsorbsEverything(self):
        files = Slot(list[str])
        verbose = Slot(bool)
        result = parse(
            ["a", "b", "--verbose", "c"],
            flag("verbose", verbose),
            positional("files", files),
        )
        self.assertTrue(result.ok)
        self.assertEqual(files.value, ["a", "b", "c"])
        self.assertIs(verbose.value, True)

    def testZeroOrMoreWithoutTokens(self):
        files = Slot(list[str])
        self.assertTrue(parse([], positional("files", files, arity="*")).ok)
        self.assertEqual(files.value, [])

    def testUnexpectedArgumentCarriesRegistry(self):
        verbose = flag("verbose")
        result = parse(["stray"], verbose)
        self.assertIsInstance(result.error, UnexpectedArgumentError)
        self.assertIn(verbose, result.error.params)
        self.assertEqual(result.error.params[0].name, "help")
        self.assertEqual(result.error.choices(), result.parser.params)


class TestAmbiguity(TestCase):
    """Declaration defects surface when the shared spelling is seen."""

    def testDuplicateLongs(self):
        result = parse(["--flag"], flag("flag"), flag("flag"))
        self.assertIsInstance(result.error, AmbiguousMatchError)
        self.assertEqual(len(result.error.params), 2)

    def testNegationCollision(self):
        result = parse(["--no-flag"], flag("flag"), flag("no-flag"))
        self.assertIsInstance(result.error, AmbiguousMatchError)

    def testUnseenDuplicatesAreHarmless(self):
        self.assertTrue(parse(["--other"], flag("flag"), flag("flag"), flag("other")).ok)

    def testDuplicateSubcommands(self):
        first = subcommand("build", lambda context: None)
        second = subcommand("build", lambda context: None)
        result = parse(["build"], first, second)
        self.assertIsInstance(result.error, AmbiguousMatchError)


class TestHooks(TestCase):
    """After-parse hooks."""

    def testHooksRunInOrder(self):
        calls = []
        port = option("port", int, after_parse=[lambda: calls.append("first")])
        port.after(lambda: calls.append("second"))
        self.assertTrue(parse(["--port", "1"], port).ok)
        self.assertEqual(calls, ["first", "second"])

    def testFailingHookAbortsParse(self):
        calls = []

        def fail():
            raise RuntimeError("boom")

        port = option("port", int, after_parse=[fail, lambda: calls.append("skipped")])
        result = parse(["--port", "1", "--nope"], port)
        self.assertIsInstance(result.error, HookError)
        self.assertIsInstance(result.error.__cause__, RuntimeError)
        self.assertEqual(calls, [])


class TestSubcommands(TestCase):
    """Nested scopes, deferred actions, abort on first error."""

    def testSubcommandParsesRemainingTokens(self):
        calls = []
        verbose = Slot(bool)

        @subcommand("build")
        def build(context):
            self.assertIsInstance(context, Context)
            target = positional("target", str)
            context.parse(target)
            context.defer(lambda: calls.append(target.value))

        result = parse(["--verbose", "build", "app"], flag("verbose", verbose), build)
        self.assertTrue(result.ok)
        self.assertTrue(result.ran_subcommand)
        self.assertIs(verbose.value, True)
        self.assertEqual(calls, [])
        result.run()
        self.assertEqual(calls, ["app"])

    def testDeferredActionsNeverRunOnError(self):
        calls = []

        @subcommand("build")
        def build(context):
            context.defer(lambda: calls.append("ran"))
            context.parse(positional("target", str))

        result = parse(["build"], build)
        self.assertIsInstance(result.error, UnsatisfiedParameterError)
        with self.assertRaises(UnsatisfiedParameterError):
            result.run()
        self.assertEqual(calls, [])

    def testNestedErrorPropagatesUnchanged(self):
        @subcommand("build")
        def build(context):
            context.parse(flag("fast"))

        result = parse(["build", "--slow"], build)
        self.assertIsInstance(result.error, UnmatchedSwitchError)
        self.assertEqual(result.error.token, "--slow")
        self.assertEqual(result.error.__notes__, [
            "parsing '--slow'",
            "running subcommand 'build'",
            "parsing 'build'",
        ])

    def testNestedDeferredActionsJoinTheQueue(self):
        calls = []

        @subcommand("inner")
        def inner(context):
            context.parse()
            context.defer(lambda: calls.append("inner"))

        @subcommand("outer")
        def outer(context):
            context.defer(lambda: calls.append("outer"))
            context.parse(inner)

        result = parse(["outer", "inner"], outer)
        self.assertTrue(result.ok)
        result.run()
        self.assertEqual(calls, ["outer", "inner"])

    def testFailingDeferredActionStopsTheRun(self):
        calls = []

        def fail():
            raise RuntimeError("boom")

        @subcommand("build")
        def build(context):
            context.defer(fail)
            context.defer(lambda: calls.append("after"))

        result = parse(["build"], build)
        with self.assertRaises(RuntimeError):
            result.run()
        self.assertEqual(calls, [])

    def testHandlerFailureIsWrapped(self):
        def build(context):
            raise RuntimeError("boom")

        result = parse(["build"], subcommand("build", build))
        self.assertIsInstance(result.error, SubcommandError)
        self.assertIsInstance(result.error.__cause__, RuntimeError)

    def testNestedParserInheritsConfiguration(self):
        seen = []

        @subcommand("build")
        def build(context):
            seen.append(context.parser().shorts)
            context.parse()

        self.assertTrue(parse(["build"], build, shorts=False).ok)
        self.assertEqual(seen, [False])

    def testSubcommandByNameAfterSeparator(self):
        calls = []
        result = parse(["--", "build"], subcommand("build", lambda context: calls.append("ran")))
        self.assertTrue(result.ok)
        self.assertEqual(calls, ["ran"])


class TestHelp(TestCase):
    """Usage output and the helped outcome."""

    def testHelpPrintsUsage(self):
        console = buffer()
        result = parse(["--help"], flag("flag", help="toggle it"), console=console)
        self.assertTrue(result.helped)
        self.assertIsInstance(result.error, Helped)
        output = console.file.getvalue()
        self.assertIn("valid arguments at this point:", output)
        self.assertIn("--help,-h", output)
        self.assertIn("--flag", output)
        self.assertIn("toggle it", output)

    def testShortHelp(self):
        console = buffer()
        self.assertTrue(parse(["-h"], console=console).helped)
        self.assertIn("--help,-h", console.file.getvalue())

    def testHelpStopsTheParse(self):
        console = buffer()
        slot = Slot(bool)
        result = parse(["--help", "--flag"], flag("flag", slot), console=console)
        self.assertTrue(result.helped)
        self.assertIs(slot.value, False)

    def testHelpInsideSubcommandShowsNestedScope(self):
        console = buffer()

        @subcommand("build")
        def build(context):
            context.parse(option("target", str))

        result = parse(["build", "--help"], flag("outer"), build, console=console)
        self.assertTrue(result.helped)
        output = console.file.getvalue()
        self.assertIn("--target <target>", output)
        self.assertNotIn("--outer", output)

    def testUsageSkipsClosedPositionals(self):
        parser = Parser(["a"], positional("source", str), positional("target", str))
        parser.parse_one()
        text = parser.usage().plain
        self.assertNotIn("<source>", text)
        self.assertIn("<target>", text)

    def testUsageListsSubcommandsByName(self):
        parser = Parser([], subcommand("build", lambda context: None, help="build it"))
        text = parser.usage().plain
        self.assertIn("  build\n\tbuild it", text)


class TestIdempotence(TestCase):
    """Fresh storage and fresh tokens always give the same outcome."""

    def testRepeatedRunsAgree(self):
        def run(tokens):
            port, files = Slot(int), Slot(list[str])
            result = parse(list(tokens), option("port", port), positional("files", files))
            return port.value, files.value, type(result.error), str(result.error)

        for tokens in (["--port", "8", "a", "b"], ["--port"], ["a", "--nope"], []):
            self.assertEqual(run(tokens), run(tokens), tokens)


class TestMain(TestCase):
    """Process exit contract."""

    def setUp(self):
        patcher = mock.patch.object(faults, "console", buffer())
        self.stderr = patcher.start()
        self.addCleanup(patcher.stop)

    def testHelpReturnsNormally(self):
        console = buffer()
        result = main(argv=["--help"], console=console)
        self.assertTrue(result.helped)

    def testNoneArgvReadsProcessArguments(self):
        calls = []

        @subcommand("build")
        def build(context):
            context.defer(lambda: calls.append("built"))

        with mock.patch("sys.argv", ["tool", "build"]):
            result = main(build, argv=None)
        self.assertTrue(result.ok)
        self.assertTrue(result.ran_subcommand)
        self.assertEqual(calls, ["built"])

    def testOmittedArgvReadsProcessArguments(self):
        with mock.patch("sys.argv", ["tool", "--help"]):
            result = main(console=buffer())
        self.assertTrue(result.helped)

    def testErrorExitsWithUsage(self):
        with self.assertRaises(SystemExit) as context:
            main(flag("flag"), argv=["--nope"])
        self.assertEqual(context.exception.code, 2)
        output = self.stderr.file.getvalue()
        self.assertIn("unmatched switch '--nope'", output)
        self.assertIn("valid arguments at this point:", output)

    def testNoSubcommandExits(self):
        with self.assertRaises(SystemExit) as context:
            main(flag("flag"), argv=["--flag"])
        self.assertEqual(context.exception.code, 2)
        self.assertIn("--flag", self.stderr.file.getvalue())

    def testRunsDeferredActions(self):
        calls = []

        @subcommand("build")
        def build(context):
            context.defer(lambda: calls.append("built"))

        result = main(build, argv=["build"])
        self.assertTrue(result.ok)
        self.assertEqual(calls, ["built"])

    def testFailingDeferredActionExits(self):
        def fail():
            raise RuntimeError("boom")

        @subcommand("build")
        def build(context):
            context.defer(fail)

        with self.assertRaises(SystemExit) as context:
            main(build, argv=["build"])
        self.assertEqual(context.exception.code, 2)
        self.assertIn("deferred action failed: boom", self.stderr.file.getvalue())


if __name__ == "__main__":
    unittest.main()
