"""
Argot command lines: the Command value and the lexer that produces it.

What this module provides
- Command: immutable record of one typed line (account, context, tokens and the
  token under the edit cursor). args[0] is the command name; args is never empty.
- lex(buffer, cursor): split a "/name arg 'quoted arg'" line into tokens while
  mapping a character offset onto a token index for live completion.
- parse_name(buffer): cheap extraction of the command name for dispatch lookup.

Quoting rules
- Tokens are separated by spaces; runs of spaces collapse.
- 'single' and "double" quotes group spaces into one token. A quoted segment
  ends the quote, not the token: 'ab'cd lexes to abcd, and quote styles can be
  mixed within one token.
- A backslash takes the next character literally, inside or outside quotes.

Cursor mapping
- The cursor is a character offset into the buffer. The resulting index points
  at the token being edited; a cursor sitting after a trailing space points one
  past the last token (the next, not-yet-typed argument).
"""
import enum
import logging

from .faults import *
from .utils import *

logger = logging.getLogger(__name__)

PREFIX = "/"


class Command(metaclass=IntrospectableType):
    """
    Immutable command line value produced by lex().

    Fields
    - account: caller-supplied identity reference (any object, None when absent).
    - context: caller-supplied context label (e.g. the conversation the line was typed in).
    - args: tuple of tokens; args[0] is the command name.
    - cursor: token index under the edit cursor, 0 <= cursor <= len(args).

    Modified copies are built with copy.replace(command, args=..., cursor=...).
    """

    __introspectable__ = (
        "account",
        "context",
        "args",
        "cursor",
    )

    __slots__ = tuple("_" + name for name in __introspectable__)

    def __init__(self, args, cursor=0, /, account=None, context=""):
        if isinstance(args, str):
            raise TypeError(f"{type(self).__typename__} 'args' must be a sequence of strings")
        args = tuple(args)
        if not args:
            raise ValueError(f"{type(self).__typename__} 'args' cannot be empty")
        if not all(isinstance(arg, str) for arg in args):
            raise TypeError(f"{type(self).__typename__} 'args' must be a sequence of strings")
        if not isinstance(cursor, int) or isinstance(cursor, bool):
            raise TypeError(f"{type(self).__typename__} 'cursor' must be an integer")
        if not 0 <= cursor <= len(args):
            raise ValueError(f"{type(self).__typename__} 'cursor' is out of range")
        if not isinstance(context, str):
            raise TypeError(f"{type(self).__typename__} 'context' must be a string")

        self._account = account
        self._context = context
        self._args = args
        self._cursor = cursor

    @property
    def name(self):
        """
        The command name (first token).
        """
        return self._args[0]

    def assemble(self):
        """
        Re-quote the tokens into a line that lexes back to the same args.
        """
        from .serializer import assemble
        return assemble(self._args)

    def __replace__(self, /, **overrides):
        fields = {name: getattr(self, name) for name in type(self).__introspectable__}
        unknown = overrides.keys() - fields.keys()
        if unknown:
            raise TypeError(f"{type(self).__typename__} has no field {min(unknown)!r}")
        fields |= overrides
        return type(self)(fields["args"], fields["cursor"], account=fields["account"], context=fields["context"])

    def __eq__(self, other):
        if not isinstance(other, Command):
            return NotImplemented
        return (
            self._account == other._account and
            self._context == other._context and
            self._args == other._args and
            self._cursor == other._cursor
        )

    def __hash__(self):
        return hash((self._context, self._args, self._cursor))


class State(enum.Enum):
    INITIAL = enum.auto()
    DELIMITER = enum.auto()
    SIMPLY_QUOTED = enum.auto()
    DOUBLY_QUOTED = enum.auto()
    UNQUOTED = enum.auto()
    UNQUOTED_ESCAPED = enum.auto()
    SIMPLY_QUOTED_ESCAPED = enum.auto()
    DOUBLY_QUOTED_ESCAPED = enum.auto()


# escaped state -> state resumed after the escaped character
_ESCAPES = {
    State.UNQUOTED_ESCAPED: State.UNQUOTED,
    State.SIMPLY_QUOTED_ESCAPED: State.SIMPLY_QUOTED,
    State.DOUBLY_QUOTED_ESCAPED: State.DOUBLY_QUOTED,
}

# quoted state -> (closing quote, escaped state)
_QUOTES = {
    State.SIMPLY_QUOTED: ("'", State.SIMPLY_QUOTED_ESCAPED),
    State.DOUBLY_QUOTED: ('"', State.DOUBLY_QUOTED_ESCAPED),
}


def _missing_prefix(buffer):
    return MissingPrefixError(
        "Missing starting %s" % PREFIX,
        title="missing prefix",
        hint="commands start with %r (for example: %shelp)" % (PREFIX, PREFIX),
        buffer=buffer,
    )


def _step(state, char, token, tokens, buffer):
    """
    Consume one character and return the next state.

    Appends to `token` (a list of characters) and `tokens` in place.
    """
    match state:
        case State.INITIAL:
            if char != PREFIX:
                raise _missing_prefix(buffer)
            return State.DELIMITER
        case State.DELIMITER:
            match char:
                case " ":
                    return State.DELIMITER
                case "'":
                    return State.SIMPLY_QUOTED
                case '"':
                    return State.DOUBLY_QUOTED
                case "\\":
                    return State.UNQUOTED_ESCAPED
            token.append(char)
            return State.UNQUOTED
        case State.SIMPLY_QUOTED | State.DOUBLY_QUOTED:
            quote, escaped = _QUOTES[state]
            if char == quote:
                return State.UNQUOTED
            if char == "\\":
                return escaped
            token.append(char)
            return state
        case State.UNQUOTED:
            match char:
                case "'":
                    return State.SIMPLY_QUOTED
                case '"':
                    return State.DOUBLY_QUOTED
                case "\\":
                    return State.UNQUOTED_ESCAPED
                case " ":
                    tokens.append("".join(token))
                    token.clear()
                    return State.DELIMITER
            token.append(char)
            return State.UNQUOTED
        case _:
            token.append(char)
            return _ESCAPES[state]


def lex(buffer, cursor=Unset, /, account=None, context=""):
    """
    Split a command line into a Command.

    Parameters
    - buffer: str
      the raw line, starting with the "/" prefix.
    - cursor: int | Unset
      character offset of the edit cursor; defaults to the last character.
    - account, context:
      identity and context carried unchanged into the Command.

    Raises
    - MissingPrefixError: the line does not start with "/".
    - UnterminatedQuoteError: a quote is still open at the end of the line.
    - DanglingEscapeError: the line ends with a backslash.
    """
    if not isinstance(buffer, str):
        raise TypeError("lex() argument must be a string")
    cursor = coalesce(cursor, max(len(buffer) - 1, 0))
    if not isinstance(cursor, int) or isinstance(cursor, bool):
        raise TypeError("lex() cursor must be an integer")
    if cursor < 0:
        raise ValueError("lex() cursor cannot be negative")

    tokens = []
    token = []
    state = State.INITIAL
    countdown = cursor
    index = None

    for char in buffer:
        state = _step(state, char, token, tokens, buffer)

        # record once, the first time the countdown reaches the cursor
        if countdown == 0:
            if index is None:
                index = len(tokens)
        else:
            countdown -= 1

    match state:
        case State.INITIAL:
            raise _missing_prefix(buffer)
        case State.SIMPLY_QUOTED | State.DOUBLY_QUOTED:
            raise UnterminatedQuoteError(
                "Missing closing quote",
                title="unterminated quote",
                hint="close the quote opened in %r" % "".join(token),
                buffer=buffer,
            )
        case State.UNQUOTED_ESCAPED | State.SIMPLY_QUOTED_ESCAPED | State.DOUBLY_QUOTED_ESCAPED:
            raise DanglingEscapeError(
                "Missing escaped char",
                title="dangling escape",
                hint="add the character to escape after the trailing backslash",
                buffer=buffer,
            )
        case State.UNQUOTED:
            tokens.append("".join(token))

    if index is None:
        index = len(tokens) if state is State.DELIMITER else len(tokens) - 1

    if not tokens:
        tokens = [""]
        index = 0

    logger.debug("lexed %r at %d into %r (cursor %d)", buffer, cursor, tokens, index)
    return Command(tokens, index, account=account, context=context)


def parse_name(buffer, /):
    """
    Return the command name of a line without tokenizing it.

    The name is the longest run of alphanumeric characters after the prefix, so
    "/me's best client" yields "me". Quoting is never inspected.
    """
    if not isinstance(buffer, str):
        raise TypeError("parse_name() argument must be a string")
    if not buffer.startswith(PREFIX):
        raise _missing_prefix(buffer)

    buffer = buffer[len(PREFIX):]
    for end, char in enumerate(buffer):
        if not char.isalnum():
            return buffer[:end]
    return buffer


__all__ = (
    "PREFIX",
    "Command",
    "State",
    "lex",
    "parse_name",
)
