"""
Argot registry: the top-level table of commands.

A Registry maps command names to schemas and is the host's single entry point:
- resolve(buffer): find the schema addressed by a raw line;
- complete(context, buffer, cursor): suggestions for the token under the cursor;
- dispatch(context, buffer): lex, resolve, bind and run a line, surfacing faults through
  trigger() (raised by default, printed on the rich console in shell mode).
"""
import difflib
import logging

from .commands import PREFIX, Command, lex, parse_name
from .faults import *
from .schemas import Schema, command
from .utils import *

logger = logging.getLogger(__name__)


class Registry(metaclass=IntrospectableType):
    """
    Name -> Schema table.

    Runtime flags
    - shell: print faults instead of raising them.
    - fancy: render faults inside panels.
    - colorful: style fault renderings.
    A schema's own flags, when set, win over the registry's.
    """

    __introspectable__ = (
        "schemas",
        "shell",
        "fancy",
        "colorful",
    )

    def __init__(self, schemas=(), /, *, shell=False, fancy=False, colorful=False):
        for flag, value in (("shell", shell), ("fancy", fancy), ("colorful", colorful)):
            if not isinstance(value, bool):
                raise TypeError(f"{type(self).__typename__} {flag!r} must be a boolean")
        self._schemas = {}
        self._shell = shell
        self._fancy = fancy
        self._colorful = colorful
        for schema in schemas:
            self.register(schema)

    def register(self, schema, /):
        """
        Add `schema` to the table and return it.

        Names must be alphanumeric (that is what parse_name() extracts) and unique.
        """
        if not isinstance(schema, Schema):
            raise TypeError("register() argument must be a schema")
        if not schema.name.isalnum():
            raise ValueError("register() schema name %r must be alphanumeric" % schema.name)
        if self._schemas.setdefault(schema.name, schema) is not schema:
            raise ValueError("register() schema name %r is already in use" % schema.name)
        logger.debug("registered command %r", schema.name)
        return schema

    def command(self, source=Unset, /, *args, **kwargs):
        """
        Build a schema with command() and register it. Usable as a decorator.
        """
        @rename("command")
        def wrapper(source, /):
            return self.register(command(source, *args, **kwargs))

        return wrapper(source) if source is not Unset else wrapper

    def resolve(self, buffer, /):
        """
        Return the schema named by `buffer` (a raw line or a bare name).

        Raises UnknownCommandError ("Unknown command <name>") when no schema matches.
        """
        if not isinstance(buffer, str):
            raise TypeError("resolve() argument must be a string")
        name = parse_name(buffer) if buffer.startswith(PREFIX) else buffer
        try:
            return self._schemas[name]
        except KeyError:
            suggestions = difflib.get_close_matches(name, self._schemas.keys(), 5)
            raise UnknownCommandError(
                "Unknown command %s" % name,
                title="unknown command",
                hint=(
                    "did you mean %s%s?" % (PREFIX, suggestions[0]) if suggestions else
                    "type %shelp to list the available commands" % PREFIX
                ),
                name=name,
                suggestions=suggestions,
            ) from None

    def complete(self, context, buffer, cursor=Unset, /, account=None, conversation=""):
        """
        Suggestions for the token under `cursor` (a character offset into `buffer`).

        - cursor on the command name: registered names starting with it, sorted;
        - elsewhere: delegated to the command's schema (empty for unknown commands).
        Lexical errors propagate; the caller decides how to show an incomplete line.
        """
        command = lex(buffer, cursor, account=account, context=conversation)
        if command.cursor == 0:
            return sorted(name for name in self._schemas if name.startswith(command.name))
        try:
            schema = self._schemas[command.name]
        except KeyError:
            return []
        return list(schema.complete(context, command))

    def execute(self, context, command, /):
        """
        Run an already lexed `command` (for instance one resumed from a
        RequestSecret event). Faults are surfaced like in dispatch().
        """
        if not isinstance(command, Command):
            raise TypeError("execute() second argument must be a command")
        schema = None
        try:
            schema = self.resolve(command.name)
            return schema.execute(context, command)
        except CommandException as fault:
            self._surface(fault, schema)
            return None

    def dispatch(self, context, buffer, /, account=None, conversation=""):
        """
        Lex, bind and run one line.

        Returns the binding outcome (Bound or Deferred), or None when a fault
        was printed in shell mode.
        """
        schema = None
        try:
            command = lex(buffer, account=account, context=conversation)
            schema = self.resolve(buffer)
            logger.debug("dispatching %r", command.name)
            return schema.execute(context, command)
        except CommandException as fault:
            self._surface(fault, schema)
            return None

    def _surface(self, fault, schema):
        def flag(name):
            own = getattr(schema, name) if schema is not None else Unset
            return coalesce(own, getattr(self, "_" + name))

        logger.debug("surfacing %s: %s", type(fault).__name__, fault)
        trigger(
            fault,
            shell=flag("shell"),
            fancy=flag("fancy"),
            colorful=flag("colorful"),
        )

    def __contains__(self, name):
        return name in self._schemas

    def __getitem__(self, name):
        return self._schemas[name]

    def __iter__(self):
        return iter(self._schemas.values())

    def __len__(self):
        return len(self._schemas)


__all__ = (
    "Registry",
)
