"""
Argot schemas: declare commands, bind command lines, complete and describe them.

What this module provides
- Schema: a named command made of ordered argument slots (Required, Optional,
  Named, Secret, Subcommand), a help text, a callback and the completion
  providers derived from the slots (exactly one per slot).
- bind(context, command, schema): the single generic binder. Walks the tokens
  of a Command against the slots and returns Bound (all slots bound) or
  Deferred (a Secret is missing), or raises a BindingError.
- command(...): build a Schema from a callback whose parameters default to
  argument specs, or return a decorator doing so.
- RequestSecret: event scheduled on the host when a Secret slot defers.

Quick start
    from argot import command, Required, Optional, Secret

    @command
    def join(context, command, room=Required(str), nick=Optional(str), password=Secret()):
        \"\"\"Join a chat room\"\"\"
        context.join(room, nick, password)

    join.execute(app, lex("/join lounge@chat.example"))

Binding rules (positions start after the command name)
- Required: the token at the current position, decoded; missing -> MissingArgumentError.
- Optional: the token if present, else lookup(context, command), else None; the position always advances.
- Named: every later token starting with the slot name is removed from the line;
  one match decodes the text after "=", several -> MultipleOccurrencesError.
- Secret: the token if present, else lookup(context, command), else the command is
  deferred: nothing runs and a RequestSecret(command) is scheduled.
- Subcommand: the token names a child schema which binds the rest of the line
  (the child sees its own name first); the parent never resumes.

Callbacks are called as callback(context, command, **values), where `command` is
the leaf command after subcommand routing and Named removal.
"""
import copy
import difflib
import inspect
import logging
import textwrap
from inspect import Parameter
from types import MappingProxyType

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .arguments import *
from .commands import Command, PREFIX
from .decoders import resolve, label
from .faults import *
from .utils import *

logger = logging.getLogger(__name__)


class RequestSecret(metaclass=IntrospectableType):
    """
    Event asking the host to collect a secret for a deferred command.

    The host prompts for the secret out of band, then re-submits
    event.resume(secret): the original command with the secret appended.
    """
    __introspectable__ = (
        "command",
        "slot",
    )

    def __init__(self, command, slot, /):
        if not isinstance(command, Command):
            raise TypeError(f"{type(self).__typename__} 'command' must be a command")
        self._command = command
        self._slot = slot

    def resume(self, secret, /):
        """
        Return the original command with `secret` appended as its last token.
        """
        if not isinstance(secret, str):
            raise TypeError("resume() argument must be a string")
        args = self._command.args + (secret,)
        return copy.replace(self._command, args=args, cursor=len(args) - 1)

    def __eq__(self, other):
        if not isinstance(other, RequestSecret):
            return NotImplemented
        return self._command == other._command and self._slot == other._slot

    def __hash__(self):
        return hash((self._command, self._slot))


class Bound(metaclass=IntrospectableType):
    """
    Successful binding: the leaf schema reached, its command and the bound values.
    """
    __introspectable__ = (
        "schema",
        "command",
        "values",
    )

    def __init__(self, schema, command, values, /):
        self._schema = schema
        self._command = command
        self._values = dict(values)


class Deferred(metaclass=IntrospectableType):
    """
    Intentionally incomplete binding: a Secret slot is waiting for input.
    """
    __introspectable__ = (
        "event",
    )

    def __init__(self, event, /):
        self._event = event


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: validate the identity, help and runtime flags of a schema.
    """
    if not isinstance(name := metadata["name"], str):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif not (name := name.strip()) or any(char.isspace() for char in name):
        raise ValueError(f"{cls.__typename__} 'name' must be a non-empty word")
    metadata["name"] = name

    if not isinstance(descr := metadata["descr"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'help' must be a string")
    metadata["descr"] = coalesce(descr, "").strip()

    if metadata["callback"] is not Unset and not callable(metadata["callback"]):
        raise TypeError(f"{cls.__typename__} 'callback' must be callable")

    for flag in ("shell", "fancy", "colorful"):
        if not isinstance(metadata[flag], bool | Unset):
            raise TypeError(f"{cls.__typename__} {flag!r} must be a boolean")


def _sanitize_slots(cls, metadata, /):
    """
    Internal: validate the slot list.

    - every slot is an argument spec with a name, names are unique;
    - at most one Subcommand, and it is the last slot (routing is a tail dispatch).
    """
    slots = []
    names = set()
    for slot in metadata["slots"]:
        if not isinstance(slot, Argument):
            raise TypeError(f"{cls.__typename__} slots must be argument specs")
        if slot.name is Unset:
            raise ValueError(f"{cls.__typename__} slots must be named")
        if slot.name in names:
            raise ValueError(f"{cls.__typename__} slot name {slot.name!r} is already in use")
        if slots and isinstance(slots[-1], Subcommand):
            raise ValueError(f"{cls.__typename__} subcommand slot must be the last slot")
        names.add(slot.name)
        slots.append(slot)
    metadata["slots"] = slots


def _flag_replayed_lookups(schema):
    """
    Warn when lookups run before a Secret slot: a deferred command is re-bound
    from scratch once the secret arrives, so those lookups run again.
    """
    for index, slot in enumerate(schema.slots):
        if not isinstance(slot, Secret):
            continue
        replayed = [
            previous.name for previous in schema.slots[:index]
            if getattr(previous, "lookup", Unset) is not Unset
        ]
        if replayed:
            trigger(ReplayedLookupWarning(
                "lookup of %s runs again when %s %s is supplied" % (", ".join(replayed), schema.name, slot.name),
                title="replayed lookup",
                hint="keep lookups before %r free of side effects" % slot.name,
                prog=PREFIX + schema.name,
                argument=slot,
                replayed=tuple(replayed),
            ))


class Schema(metaclass=IntrospectableType):
    """
    Declarative description of one command.

    Responsibilities
    - Introspection: name, help, slots and completion providers as read-only properties.
    - Binding: bind()/execute() interpret the slots against a Command.
    - Completion: `completions` holds one provider (or None) per slot, in order;
      complete() picks the provider under the cursor.
    - Help: `help` is the base text followed by the indented help of every
      subcommand, recursively; __rich__ renders usage, help and slot table.

    Runtime flags (shell/fancy/colorful) left Unset are inherited from the
    registry dispatching the command.
    """

    __introspectable__ = (
        "name",
        "descr",
        "slots",
        "completions",
        "callback",
        "shell",
        "fancy",
        "colorful",
    )

    __displayable__ = (
        "name",
        "descr",
        "slots",
    )

    def __new__(
            cls,
            name,
            /,
            help=Unset,
            slots=(),
            callback=Unset,
            *,
            shell=Unset,
            fancy=Unset,
            colorful=Unset
    ):
        """
        Construct a Schema.

        Parameters
        - name: str
          command name (the first token of the line).
        - help: str | Unset
          base help text.
        - slots: Iterable[Argument]
          named argument specs, in binding order.
        - callback: Callable | Unset
          called as callback(context, command, **values) once every slot is bound.
        - shell, fancy, colorful: bool | Unset
          rendering flags for faults and help.
        """
        metadata = {
            "name": name,
            "descr": help,
            "slots": slots,
            "callback": callback,
            "shell": shell,
            "fancy": fancy,
            "colorful": colorful,
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_slots(cls, metadata)

        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)

        self._completions = [slot.provider() for slot in self._slots]
        assert len(self._completions) == len(self._slots), "one completion provider per slot"

        _flag_replayed_lookups(self)
        return self

    @property
    def help(self):
        """
        Base help followed by every subcommand's help, indented one level.
        """
        parts = [self._descr]
        for slot in self._slots:
            if isinstance(slot, Subcommand):
                for child in slot.children.values():
                    parts.append(textwrap.indent(child.help, "\t"))
        return "\n\n".join(part for part in parts if part)

    @property
    def usage(self):
        """
        One-line usage, e.g. "/join <room> [<nick>] [password=<password>]".
        """
        parts = [PREFIX + self._name]
        for slot in self._slots:
            match slot:
                case Required():
                    parts.append("<%s>" % slot.name)
                case Optional() | Secret():
                    parts.append("[<%s>]" % slot.name)
                case Named():
                    parts.append("[%s=<%s>]" % (slot.name, slot.name))
                case Subcommand():
                    parts.append("{%s} ..." % "|".join(slot.children))
        return " ".join(parts)

    def bind(self, context, command, /):
        """
        Bind `command` against this schema (see bind()).
        """
        return bind(context, command, self)

    def execute(self, context, command, /):
        """
        Bind `command` and run the outcome.

        - Deferred: the RequestSecret event is handed to context.schedule().
        - Bound: the leaf schema's callback runs with the bound values.
          Exceptions raised by the callback are wrapped in DelegatedCommandError.

        Returns the outcome (Bound or Deferred); BindingError propagates.
        """
        outcome = self.bind(context, command)

        if isinstance(outcome, Deferred):
            schedule = getattr(context, "schedule", None)
            if not callable(schedule):
                raise TypeError("execute() context must provide a schedule() method")
            logger.debug("deferring %r until %s is supplied", outcome.event.command.name, outcome.event.slot)
            schedule(outcome.event)
            return outcome

        schema = outcome.schema
        if schema.callback is Unset:
            return outcome

        try:
            schema.callback(context, outcome.command, **outcome.values)
        except CommandException:
            raise
        except Exception as exception:
            raise DelegatedCommandError(
                "Command %s failed: %s" % (schema.name, exception),
                title="delegated error",
                hint="check additional logs for more details",
                prog=PREFIX + schema.name,
                exception=exception,
            ) from exception
        return outcome

    def complete(self, context, command, /):
        """
        Suggestions for the token under the command's cursor.

        Cursor 0 is the command name and is completed by the registry; cursor
        i + 1 is served by completions[i]. The subcommand name sits after the
        positional slots (Named slots take no position); past a recognized
        subcommand name, the child schema completes a command rebased on its
        own name. Named tokens typed before the subcommand name shift it.
        """
        position = command.cursor - 1
        if position < 0:
            return []

        if self._slots and isinstance(slot := self._slots[-1], Subcommand):
            index = 1 + sum(not isinstance(previous, Named) for previous in self._slots[:-1])
            if command.cursor == index:
                return self._completions[-1](context, command)
            if command.cursor > index and len(command.args) > index and command.args[index] in slot.children:
                child = slot.children[command.args[index]]
                return child.complete(context, copy.replace(
                    command,
                    args=command.args[index:],
                    cursor=command.cursor - index,
                ))

        try:
            provider = self._completions[position]
        except IndexError:
            return []
        if provider is None:
            return []
        return provider(context, command)

    def command(self, source=Unset, /, *args, **kwargs):
        """
        Create a child schema and attach it to this schema's Subcommand slot.

        Accepts the same arguments as command(); a Schema is attached as-is.
        Usable as a decorator: @parent.command
        """
        if not self._slots or not isinstance(self._slots[-1], Subcommand):
            raise TypeError(f"{type(self).__typename__} {self._name!r} has no subcommand slot")
        slot = self._slots[-1]

        @rename("command")
        def wrapper(source, /):
            if isinstance(source, Schema):
                if args or kwargs:
                    raise TypeError("command() cannot override an existing schema")
                return slot._attach(source)
            return slot._attach(command(source, *args, **kwargs))

        return wrapper(source) if source is not Unset else wrapper

    def __call__(self, context, command, /, **values):
        """
        Call the underlying callback directly (no binding).
        """
        if self._callback is Unset:
            return None
        return self._callback(context, command, **values)

    def __rich__(self):
        colorful = bool(coalesce(self._colorful, False))
        styles = stylesheet({
            "usage-label": "bold #00E6FF",
            "usage": "bold #36C5F0",
            "description": "italic #A3A3A3",
            "slot-name": "bold #FFD600",
            "slot-kind": "#22C55E",
            "slot-description": "#9CA3AF",
            "panel-title": "bold #FF4D94",
        })

        def styler(style):
            return styles.get(style, "") if colorful else ""

        renders = [Text.assemble(("usage: ", styler("usage-label")), (self.usage, styler("usage")))]
        if self.help:
            renders.append(Text(self.help.expandtabs(4), style=styler("description")))

        if self._slots:
            table = Table.grid(padding=(0, 2))
            for slot in self._slots:
                table.add_row(
                    Text(slot.name, style=styler("slot-name")),
                    Text(type(slot).__typename__, style=styler("slot-kind")),
                    Text(slot.descr or "", style=styler("slot-description")),
                )
            renders.append(table)

        if coalesce(self._fancy, False):
            return Panel(
                Group(*renders),
                title=Text(PREFIX + self._name, style=styler("panel-title")),
                title_align="left",
            )
        return Group(*renders)


def _decode(schema, slot, token):
    try:
        return resolve(slot.type)(token)
    except (ValueError, TypeError) as exception:
        raise ArgumentTypeError(
            "Invalid %s argument %r: expected %s (%s)" % (slot.name, token, label(slot.type), exception),
            title="invalid argument",
            hint="run '/help %s' to see the expected arguments" % schema.name,
            prog=PREFIX + schema.name,
            argument=slot,
            token=token,
            target=slot.type,
            reason=str(exception),
        ) from exception


def _missing(schema, slot):
    return MissingArgumentError(
        "Missing %s argument" % slot.name,
        title="missing argument",
        hint="usage: %s" % schema.usage,
        prog=PREFIX + schema.name,
        argument=slot,
    )


def bind(context, command, schema, /):
    """
    Bind the tokens of `command` (after its name) against the slots of `schema`.

    Returns
    - Bound(schema, command, values): every slot bound; for subcommands, the leaf
      schema and the leaf command are returned.
    - Deferred(RequestSecret(command, slot)): a Secret slot has no token and no
      lookup value; nothing after it was bound. The event always carries the
      command given here, even when the secret belongs to a subcommand.

    Raises
    - MissingArgumentError, ArgumentTypeError, MultipleOccurrencesError,
      InvalidSubcommandError. Slots after the failing one are not touched.

    Notes
    - The caller's Command is never modified; Named removal happens on a private
      copy of the tokens, and later positional slots see the shortened list.
    - Tokens beyond the last slot are ignored.
    """
    if not isinstance(command, Command):
        raise TypeError("bind() second argument must be a command")
    if not isinstance(schema, Schema):
        raise TypeError("bind() third argument must be a schema")
    return _bind(context, command, schema, command)


def _bind(context, command, schema, origin):
    # origin: the command as submitted, carried into RequestSecret
    args = list(command.args)
    index = 1
    values = {}

    def snapshot():
        return copy.replace(command, args=tuple(args), cursor=min(command.cursor, len(args)))

    for slot in schema.slots:
        match slot:
            case Required():
                if index >= len(args):
                    raise _missing(schema, slot)
                values[slot.name] = _decode(schema, slot, args[index])
                index += 1

            case Optional():
                if index < len(args):
                    values[slot.name] = _decode(schema, slot, args[index])
                elif slot.lookup is not Unset:
                    values[slot.name] = slot.lookup(context, snapshot())
                else:
                    values[slot.name] = None
                index += 1

            case Named():
                matching = []
                position = 1
                while position < len(args):
                    if args[position].startswith(slot.name):
                        matching.append(args.pop(position))
                    else:
                        position += 1

                match matching:
                    case []:
                        values[slot.name] = None
                    case [named]:
                        key, separator, value = named.partition("=")
                        if not separator:
                            raise ArgumentTypeError(
                                "Invalid %s argument %r: expected %s=<value>" % (slot.name, named, slot.name),
                                title="invalid argument",
                                hint="write it as %s=<value>" % slot.name,
                                prog=PREFIX + schema.name,
                                argument=slot,
                                token=named,
                                target=slot.type,
                                reason="missing '='",
                            )
                        values[slot.name] = _decode(schema, slot, value)
                    case _:
                        raise MultipleOccurrencesError(
                            "Multiple occurance of %s argument" % slot.name,
                            title="multiple occurrences",
                            hint="keep a single %s=<value>" % slot.name,
                            prog=PREFIX + schema.name,
                            argument=slot,
                            tokens=tuple(matching),
                        )

            case Secret():
                if index < len(args):
                    values[slot.name] = _decode(schema, slot, args[index])
                else:
                    value = None
                    if slot.lookup is not Unset:
                        value = slot.lookup(context, snapshot())
                    if value is None:
                        logger.debug("binding %r deferred on secret %s", command.name, slot.name)
                        return Deferred(RequestSecret(origin, slot.name))
                    values[slot.name] = value
                index += 1

            case Subcommand():
                if index >= len(args):
                    raise _missing(schema, slot)
                token = args[index]
                try:
                    child = slot.children[token]
                except KeyError:
                    suggestions = difflib.get_close_matches(token, slot.children.keys(), 5)
                    try:
                        hint = "did you mean %r? available: %s" % (suggestions[0], ", ".join(slot.children))
                    except IndexError:
                        hint = "available: %s" % (", ".join(slot.children) or "none")
                    raise InvalidSubcommandError(
                        "Invalid subcommand %s" % token,
                        title="invalid subcommand",
                        hint=hint,
                        prog=PREFIX + schema.name,
                        argument=slot,
                        token=token,
                        suggestions=suggestions,
                    ) from None

                logger.debug("routing %r to subcommand %r", command.name, child.name)
                return _bind(context, Command(
                    args[index:],
                    min(max(command.cursor - index, 0), len(args) - index),
                    account=command.account,
                    context=command.context,
                ), child, origin)

            case _:
                raise RuntimeError("unexpected argument")

    logger.debug("bound %r with %s", command.name, ", ".join(values) or "no values")
    return Bound(schema, snapshot(), MappingProxyType(values))


def _process_source(cls, callback):
    """
    Derive slots from a callback signature.

    The callback takes (context, command) first; every following parameter must
    default to an argument spec, which is named after the parameter.
    """
    try:
        signature = inspect.signature(callback)
    except TypeError:
        raise TypeError(f"{cls.__typename__} 'callback' must be callable") from None
    except ValueError:
        raise ValueError(f"{cls.__typename__} 'callback' must be an inspectable callable") from None

    parameters = list(signature.parameters.values())
    if (
        len(parameters) < 2 or
        any(parameter.kind in (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD, Parameter.KEYWORD_ONLY)
            for parameter in parameters[:2])
    ):
        raise TypeError(f"{cls.__typename__} 'callback' must accept (context, command) first")

    slots = []
    for parameter in parameters[2:]:
        if parameter.kind not in (Parameter.POSITIONAL_OR_KEYWORD, Parameter.KEYWORD_ONLY):
            raise TypeError(f"{cls.__typename__} 'callback' parameter {parameter.name!r} must be passable by keyword")
        if not isinstance(slot := parameter.default, Argument):
            raise TypeError(f"{cls.__typename__} 'callback' parameter {parameter.name!r} default must be an argument spec")
        if slot.name is Unset:
            slot = copy.replace(slot, name=parameter.name)
        elif slot.name != parameter.name:
            raise ValueError(f"{cls.__typename__} 'callback' parameter {parameter.name!r} is bound to slot {slot.name!r}")
        slots.append(slot)
    return slots


def command(source=Unset, /, name=Unset, help=Unset, *, shell=Unset, fancy=Unset, colorful=Unset):
    """
    Create a Schema from a callback, or return a decorator to build it later.

    Invocation modes
    - Direct:    join = command(join_callback, help="Join a room")
    - Decorator: @command  or  @command(name="j", help="...")

    The name defaults to the callback's __name__, the help to its docstring.
    """
    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        return Schema(
            coalesce(name, getattr(source, "__name__", Unset)),
            coalesce(help, inspect.getdoc(source) or Unset),
            _process_source(Schema, source),
            source,
            shell=shell,
            fancy=fancy,
            colorful=colorful,
        )

    return wrapper(source) if source is not Unset else wrapper


__all__ = (
    "RequestSecret",
    "Bound",
    "Deferred",
    "Schema",
    "bind",
    "command",
)
