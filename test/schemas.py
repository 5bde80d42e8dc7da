"""
Schema tests (binding rules, secret deferral, subcommands, execution,
completion and help).

Scope
- Validate each slot kind against present, absent and malformed tokens.
- Validate that deferral on a missing secret is silent and schedules an event.
- Validate tail dispatch to subcommands and cursor rebasing.
- Validate callback invocation and delegated error wrapping.
- Validate completion lookup by cursor and recursive help text.

Conventions
- Test method names follow CamelCase per project convention.
- Tests use the public API (command, Schema, bind, argument specs).
"""
import unittest
from unittest import TestCase

from rich.console import Console

from argot import (
    Bound,
    Command,
    Deferred,
    Named,
    Optional,
    RequestSecret,
    Required,
    Schema,
    Secret,
    Subcommand,
    bind,
    command,
)
from argot.faults import (
    ArgumentTypeError,
    BindingError,
    DelegatedCommandError,
    InvalidSubcommandError,
    MissingArgumentError,
    MultipleOccurrencesError,
    ReplayedLookupWarning,
)


class Context:
    """Minimal host: records scheduled events and callback calls."""

    def __init__(self, nickname="guest", password=None):
        self.nickname = nickname
        self.password = password
        self.events = []
        self.calls = []

    def schedule(self, event):
        self.events.append(event)


class TestBinding(TestCase):
    """One slot kind at a time."""

    def setUp(self):
        self.context = Context()

    def testRequiredDecoded(self):
        schema = Schema("repeat", slots=[Required(int, "count")])
        outcome = bind(self.context, Command(["repeat", "3"]), schema)
        self.assertIsInstance(outcome, Bound)
        self.assertEqual(outcome.values, {"count": 3})

    def testRequiredMissing(self):
        schema = Schema("cmd", slots=[Required(int, "count")])
        with self.assertRaises(MissingArgumentError) as context:
            bind(self.context, Command(["cmd"]), schema)
        self.assertEqual(str(context.exception), "Missing count argument")

    def testRequiredUncastable(self):
        schema = Schema("cmd", slots=[Required(int, "count")])
        with self.assertRaises(ArgumentTypeError) as context:
            bind(self.context, Command(["cmd", "three"]), schema)
        self.assertIsInstance(context.exception.__cause__, ValueError)
        self.assertIn("count", str(context.exception))
        self.assertIn("three", str(context.exception))
        self.assertIn("int", str(context.exception))
        self.assertEqual(context.exception.options["token"], "three")

    def testOptionalPresentAbsentAndLookup(self):
        schema = Schema("nick", slots=[
            Optional(str, "first"),
            Optional(str, "second", lookup=lambda context, command: context.nickname),
        ])
        self.assertEqual(bind(self.context, Command(["nick", "a", "b"]), schema).values, {"first": "a", "second": "b"})
        self.assertEqual(bind(self.context, Command(["nick"]), schema).values, {"first": None, "second": "guest"})

    def testOptionalAdvancesWhenAbsent(self):
        schema = Schema("cmd", slots=[Optional(str, "first"), Required(str, "second")])
        with self.assertRaises(MissingArgumentError):
            bind(self.context, Command(["cmd", "a"]), schema)

    def testNamedAnywhereAndRemoved(self):
        original = Command(["join", "password=secret", "room@chat", "me"])
        schema = Schema("join", slots=[Named(str, "password"), Required(str, "jid"), Optional(str, "nick")])
        outcome = bind(self.context, original, schema)
        self.assertEqual(outcome.values, {"password": "secret", "jid": "room@chat", "nick": "me"})
        self.assertEqual(outcome.command.args, ("join", "room@chat", "me"))
        self.assertEqual(original.args, ("join", "password=secret", "room@chat", "me"))

    def testNamedBetweenPositionals(self):
        schema = Schema("cmd", slots=[Required(str, "a"), Named(str, "foo"), Required(str, "b")])
        outcome = bind(self.context, Command(["cmd", "x", "foo=1", "y"]), schema)
        self.assertEqual(outcome.values, {"a": "x", "foo": "1", "b": "y"})
        self.assertEqual(outcome.command.args, ("cmd", "x", "y"))

    def testNamedRemovalShiftsLaterPositions(self):
        # "foo=1" is bound by `a` first, then removed by the Named scan
        schema = Schema("cmd", slots=[Required(str, "a"), Named(str, "foo"), Required(str, "b")])
        outcome = bind(self.context, Command(["cmd", "foo=1", "x", "y"]), schema)
        self.assertEqual(outcome.values, {"a": "foo=1", "foo": "1", "b": "y"})

    def testNamedAbsent(self):
        schema = Schema("cmd", slots=[Named(int, "limit")])
        self.assertEqual(bind(self.context, Command(["cmd", "x"]), schema).values, {"limit": None})

    def testNamedKeepsTextAfterFirstEquals(self):
        schema = Schema("cmd", slots=[Named(str, "filter")])
        outcome = bind(self.context, Command(["cmd", "filter=a=b"]), schema)
        self.assertEqual(outcome.values, {"filter": "a=b"})

    def testNamedMultipleOccurrences(self):
        schema = Schema("cmd", slots=[Named(str, "foo")])
        with self.assertRaises(MultipleOccurrencesError) as context:
            bind(self.context, Command(["cmd", "foo=1", "x", "foo=2"]), schema)
        self.assertEqual(str(context.exception), "Multiple occurance of foo argument")

    def testNamedWithoutEquals(self):
        schema = Schema("cmd", slots=[Named(str, "foo")])
        with self.assertRaises(ArgumentTypeError):
            bind(self.context, Command(["cmd", "foobar"]), schema)

    def testExtraTokensIgnored(self):
        schema = Schema("cmd", slots=[Required(str, "only")])
        self.assertEqual(bind(self.context, Command(["cmd", "a", "b"]), schema).values, {"only": "a"})

    def testFailureFamily(self):
        schema = Schema("cmd", slots=[Required(int, "count")])
        for args in (["cmd"], ["cmd", "x"]):
            with self.subTest(args=args):
                with self.assertRaises(BindingError):
                    bind(self.context, Command(args), schema)

    def testRejectsNonCommand(self):
        with self.assertRaises(TypeError):
            bind(self.context, "/cmd", Schema("cmd"))


class TestSecret(TestCase):
    """Deferred secret collection."""

    def setUp(self):
        self.context = Context()
        self.schema = Schema("join", slots=[Required(str, "jid"), Secret(name="password"), Required(str, "nick")])

    def testPlainTextSecret(self):
        outcome = bind(self.context, Command(["join", "room", "hunter2", "me"]), self.schema)
        self.assertEqual(outcome.values["password"], "hunter2")
        self.assertNotIn("hunter2", repr(outcome.values["password"]))

    def testDeferredWithoutError(self):
        original = Command(["join", "room"])
        outcome = bind(self.context, original, self.schema)
        self.assertIsInstance(outcome, Deferred)
        self.assertEqual(outcome.event, RequestSecret(original, "password"))
        self.assertEqual(outcome.event.command, original)

    def testLookupAvoidsDeferral(self):
        schema = Schema("join", slots=[
            Required(str, "jid"),
            Secret(name="password", lookup=lambda context, command: context.password),
        ])
        self.assertIsInstance(bind(Context(), Command(["join", "room"]), schema), Deferred)
        outcome = bind(Context(password="stored"), Command(["join", "room"]), schema)
        self.assertEqual(outcome.values, {"jid": "room", "password": "stored"})

    def testExecuteSchedulesEvent(self):
        calls = []
        schema = Schema(
            "join",
            slots=[Required(str, "jid"), Secret(name="password")],
            callback=lambda context, command, **values: calls.append(values),
        )
        outcome = schema.execute(self.context, Command(["join", "room"]))
        self.assertIsInstance(outcome, Deferred)
        self.assertEqual(self.context.events, [outcome.event])
        self.assertEqual(calls, [])

    def testResume(self):
        calls = []
        schema = Schema(
            "join",
            slots=[Required(str, "jid"), Secret(name="password")],
            callback=lambda context, command, **values: calls.append(values),
        )
        outcome = schema.execute(self.context, Command(["join", "room"]))
        resumed = outcome.event.resume("hunter2")
        self.assertEqual(resumed.args, ("join", "room", "hunter2"))
        schema.execute(self.context, resumed)
        self.assertEqual(calls, [{"jid": "room", "password": "hunter2"}])

    def testExecuteRequiresScheduler(self):
        schema = Schema("join", slots=[Secret(name="password")])
        with self.assertRaises(TypeError):
            schema.execute(object(), Command(["join"]))

    def testReplayedLookupFlagged(self):
        with self.assertWarns(ReplayedLookupWarning):
            Schema("join", slots=[
                Optional(str, "nick", lookup=lambda context, command: context.nickname),
                Secret(name="password"),
            ])


class TestSubcommand(TestCase):
    """Tail dispatch to child schemas."""

    def setUp(self):
        self.context = Context()
        self.account = Schema("account", "Manage accounts", [Subcommand(name="action")])

        @self.account.command
        def add(context, command, jid=Required(str, descr="account address")):
            """Add an account"""
            context.calls.append(("add", jid))

        @self.account.command(help="Remove an account")
        def remove(context, command, jid=Required(str)):
            context.calls.append(("remove", jid))

        self.add = add

    def testRoutesToChild(self):
        outcome = bind(self.context, Command(["account", "add", "me@example.org"]), self.account)
        self.assertIs(outcome.schema, self.add)
        self.assertEqual(outcome.command.args, ("add", "me@example.org"))
        self.assertEqual(outcome.values, {"jid": "me@example.org"})

    def testCursorRebased(self):
        outcome = bind(self.context, Command(["account", "add", "me"], 2), self.account)
        self.assertEqual(outcome.command.cursor, 1)
        outcome = bind(self.context, Command(["account", "add", "me"], 0), self.account)
        self.assertEqual(outcome.command.cursor, 0)

    def testInvalidSubcommand(self):
        with self.assertRaises(InvalidSubcommandError) as context:
            bind(self.context, Command(["account", "rename"]), self.account)
        self.assertEqual(str(context.exception), "Invalid subcommand rename")

    def testMissingSubcommand(self):
        with self.assertRaises(MissingArgumentError):
            bind(self.context, Command(["account"]), self.account)

    def testDeferredChildCarriesSubmittedCommand(self):
        @self.account.command
        def login(context, command, jid=Required(str), password=Secret()):
            context.calls.append(("login", jid, password))

        submitted = Command(["account", "login", "me@example.org"], 2)
        outcome = bind(self.context, submitted, self.account)
        self.assertIsInstance(outcome, Deferred)
        self.assertEqual(outcome.event.command, submitted)

        self.account.execute(self.context, outcome.event.resume("hunter2"))
        self.assertEqual(self.context.calls, [("login", "me@example.org", "hunter2")])

    def testExecuteRunsChild(self):
        self.account.execute(self.context, Command(["account", "remove", "old@example.org"]))
        self.assertEqual(self.context.calls, [("remove", "old@example.org")])

    def testAttachRequiresSubcommandSlot(self):
        with self.assertRaises(TypeError):
            Schema("leaf").command(Schema("child"))

    def testSubcommandMustBeLast(self):
        with self.assertRaises(ValueError):
            Schema("bad", slots=[Subcommand(name="action"), Required(str, "jid")])


class TestConstruction(TestCase):

    def testSchemaWithCallbackAndLookup(self):
        def callback(context, command, nick=None):
            context.calls.append(nick)

        schema = Schema(
            "nick",
            "Change the nickname",
            [Optional(str, "nick", lookup=lambda context, command: context.nickname)],
            callback,
        )
        self.assertEqual(schema.name, "nick")
        self.assertEqual(schema.help, "Change the nickname")
        self.assertIs(schema.callback, callback)
        self.assertEqual(len(schema.slots), 1)
        self.assertIsNone(schema.completions[0])

        context = Context(nickname="guest")
        schema.execute(context, Command(["nick"]))
        self.assertEqual(context.calls, ["guest"])

    def testCallbackMustBeCallable(self):
        with self.assertRaises(TypeError):
            Schema("nick", callback=42)

    def testFlagsMustBeBooleans(self):
        with self.assertRaises(TypeError):
            Schema("nick", shell="yes")


class TestExecution(TestCase):

    def testCallbackReceivesValues(self):
        context = Context()

        @command
        def join(context, command, jid=Required(str), nick=Optional(str)):
            """Join a room"""
            context.calls.append((command.args, jid, nick))

        outcome = join.execute(context, Command(["join", "room"]))
        self.assertIsInstance(outcome, Bound)
        self.assertEqual(context.calls, [(("join", "room"), "room", None)])

    def testDelegatedError(self):
        @command
        def crash(context, command):
            raise RuntimeError("boom")

        with self.assertRaises(DelegatedCommandError) as context:
            crash.execute(Context(), Command(["crash"]))
        self.assertIsInstance(context.exception.__cause__, RuntimeError)
        self.assertIn("boom", str(context.exception))

    def testCommandFaultsPropagateUnwrapped(self):
        @command
        def strict(context, command):
            raise MissingArgumentError("Missing thing argument")

        with self.assertRaises(MissingArgumentError):
            strict.execute(Context(), Command(["strict"]))

    def testNoCallback(self):
        outcome = Schema("noop").execute(Context(), Command(["noop"]))
        self.assertIsInstance(outcome, Bound)


class TestCommandDecorator(TestCase):

    def testSignatureDrivesSlots(self):
        @command
        def join(context, command, jid=Required(str), nick=Optional(str), *, password=Named(str)):
            """Join a room"""

        self.assertEqual(join.name, "join")
        self.assertEqual(join.help, "Join a room")
        self.assertEqual([slot.name for slot in join.slots], ["jid", "nick", "password"])

    def testExplicitName(self):
        @command(name="j", help="Join shortcut")
        def join(context, command):
            pass

        self.assertEqual(join.name, "j")
        self.assertEqual(join.help, "Join shortcut")

    def testParameterWithoutSpecRejected(self):
        with self.assertRaises(TypeError):
            @command
            def join(context, command, jid="room"):
                pass

    def testMismatchedSlotNameRejected(self):
        with self.assertRaises(ValueError):
            @command
            def join(context, command, jid=Required(str, "room")):
                pass

    def testMissingContextParameters(self):
        with self.assertRaises(TypeError):
            @command
            def join(jid=Required(str)):
                pass

    def testDuplicateSlotNames(self):
        with self.assertRaises(ValueError):
            Schema("cmd", slots=[Required(str, "a"), Optional(str, "a")])

    def testUnnamedSlotRejected(self):
        with self.assertRaises(ValueError):
            Schema("cmd", slots=[Required(str)])

    def testDirectCall(self):
        calls = []

        @command
        def echo(context, command, text=Required(str)):
            calls.append(text)

        echo(None, Command(["echo"]), text="hi")
        self.assertEqual(calls, ["hi"])


class TestCompletion(TestCase):

    def setUp(self):
        self.context = Context()
        self.join = Schema("join", slots=[
            Required(str, "jid", completion=lambda context, command: ["a@chat", "b@chat"]),
            Optional(str, "nick"),
        ])

    def testCompletionsAlignedWithSlots(self):
        self.assertEqual(len(self.join.completions), len(self.join.slots))
        self.assertIsNone(self.join.completions[1])

    def testProviderUnderCursor(self):
        self.assertEqual(self.join.complete(self.context, Command(["join", ""], 1)), ["a@chat", "b@chat"])

    def testPlaceholderSlot(self):
        self.assertEqual(self.join.complete(self.context, Command(["join", "a", ""], 2)), [])

    def testOutOfRange(self):
        self.assertEqual(self.join.complete(self.context, Command(["join", "a", "b"], 3)), [])
        self.assertEqual(self.join.complete(self.context, Command(["join"], 0)), [])

    def testNamedSlotBeforeSubcommand(self):
        account = Schema("account", slots=[
            Named(str, "server", completion=lambda context, command: ["server="]),
            Subcommand(name="action"),
        ])
        account.command(self.join)
        account.command(Schema("list"))
        self.assertEqual(account.complete(self.context, Command(["account", ""], 1)), ["join", "list"])
        self.assertEqual(
            account.complete(self.context, Command(["account", "join", ""], 2)),
            ["a@chat", "b@chat"],
        )

    def testSubcommandCompletion(self):
        account = Schema("account", slots=[Subcommand(name="action")])
        account.command(self.join)
        account.command(Schema("list"))
        self.assertEqual(account.complete(self.context, Command(["account", "j"], 1)), ["join", "list"])
        self.assertEqual(
            account.complete(self.context, Command(["account", "join", ""], 2)),
            ["a@chat", "b@chat"],
        )
        self.assertEqual(account.complete(self.context, Command(["account", "nope", ""], 2)), [])


class TestHelp(TestCase):

    def testRecursiveIndentedHelp(self):
        root = Schema("account", "Manage accounts", [Subcommand(name="action")])
        server = root.command(Schema("server", "Server settings", [Subcommand(name="setting")]))
        server.command(Schema("port", "Change the port"))
        root.command(Schema("remove", "Remove an account"))

        self.assertEqual(
            root.help,
            "Manage accounts\n\n"
            "\tServer settings\n\n"
            "\t\tChange the port\n\n"
            "\tRemove an account",
        )

    def testUsage(self):
        schema = Schema("join", slots=[
            Required(str, "jid"),
            Optional(str, "nick"),
            Named(str, "password"),
        ])
        self.assertEqual(schema.usage, "/join <jid> [<nick>] [password=<password>]")

    def testRichRendering(self):
        schema = Schema("join", "Join a room", [Required(str, "jid", descr="room address")])
        console = Console(color_system=None, force_terminal=False, width=80)
        with console.capture() as capture:
            console.print(schema)
        output = capture.get()
        self.assertIn("usage: /join <jid>", output)
        self.assertIn("Join a room", output)
        self.assertIn("room address", output)


if __name__ == "__main__":
    unittest.main()
