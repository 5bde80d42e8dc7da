"""
Argot faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
  Codes are grouped by domain (lexing, routing, binding, delegated, warnings).
- CommandException / CommandWarning: base types that carry a single-line message
  plus read-only options, and know how to render themselves through rich.
- LexicalError / BindingError: the two disjoint error families. A lexical error
  aborts lexing (no Command is produced); a binding error aborts one binding
  attempt (the command body never runs).
- trigger(): central entry point to surface any fault (raise, or render when the
  host runs in shell mode).
- getdoc(): optional description lookup for a code from the host application.

Messages
- str(fault) is the plain message, suitable for direct display in a status line
  (e.g. "Missing closing quote", "Missing jid argument").
- The rich rendering adds a header with the program label, the normalized code
  and a title, plus a one-line hint.

Integration
- Lexer and binder raise the faults directly; Registry.dispatch() routes them
  through trigger() so a terminal UI can print instead of raise.
"""
import copy
import inspect
import warnings
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the command layer (stable identifiers).

    grouping (by high-level domain)
    - lexing (1110x)
      • MISSING_PREFIX, UNTERMINATED_QUOTE, DANGLING_ESCAPE
    - routing (1111x)
      • UNKNOWN_COMMAND, INVALID_SUBCOMMAND
    - binding (1112x)
      • MISSING_ARGUMENT, UNCASTABLE_ARGUMENT, MULTIPLE_OCCURRENCES
    - delegated errors (1113x)
      • DELEGATED_ERROR
    - warnings (121xx)
      • REPLAYED_LOOKUP

    normalize() allows host remapping to custom labels while keeping the codes stable.
    """
    # --- lexing errors (11xxx) ---
    MISSING_PREFIX              = 11101
    UNTERMINATED_QUOTE          = 11102
    DANGLING_ESCAPE             = 11103

    # --- routing errors (11xxx) ---
    UNKNOWN_COMMAND             = 11111
    INVALID_SUBCOMMAND          = 11112

    # --- binding errors (11xxx) ---
    MISSING_ARGUMENT            = 11121
    UNCASTABLE_ARGUMENT         = 11122
    MULTIPLE_OCCURRENCES        = 11123

    # --- delegated errors (11xxx) ---
    DELEGATED_ERROR             = 11131

    # --- warnings (12xxx) ---
    REPLAYED_LOOKUP             = 12111

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def stylesheet(palette, /):
    """
    merge a default style palette with the host overrides (__main__.__styles__).
    """
    return palette | getattr(__import__("__main__"), "__styles__", {})


def _renderer(fault, palette):
    """
    build the (styler, text) pair shared by the exception and warning renderers.
    """
    styles = defaultdict(str, stylesheet(palette))
    colorful = fault.options.get("colorful", False)

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), style)

    return styler, text


def _render(fault, kind, palette):
    styler, text = _renderer(fault, palette)
    main = __import__("__main__")

    prog = text(getattr(main, "__prog__", fault.options.get("prog", "argot")), styler("prog-name"))
    header = Text.assemble(
        "[ ",
        prog,
        " — ",
        text(fault.code.normalize() if fault.code else "?", styler("code")),
        " | ",
        text(str(fault.options.get("title", kind)).title(), styler(kind + "-title")),
        " ]"
    )
    message = text(fault.message, styler(kind + "-message"))
    renders = [message]
    if hint := fault.options.get("hint"):
        renders.append(Text.assemble(text(" → ", styler("hint-arrow")), text(hint, styler("hint"))))

    if fault.options.get("fancy", False):
        return Panel(Group(*renders), title=header, title_align="left")
    return Group(header, *renders)


class CommandException(Exception):
    """
    base class of every command-layer error.

    carries a single-line message plus read-only options (code, title, hint and
    any context the reporter may want to show, e.g. token or argument).
    """
    __code__ = None

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message or "")
        self.message = message or ""
        self.options = MappingProxyType(options)

    @property
    def code(self):
        return self.options.get("code", type(self).__code__)

    def __str__(self):
        return self.message

    def __rich__(self):
        return _render(self, "error", {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        })

    def __trigger__(self):
        if not self.options.get("shell", False):
            raise self from self.__cause__
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        replaced = type(self)(self.message, **{**self.options, **overrides})
        replaced.__cause__ = self.__cause__
        return replaced


class LexicalError(CommandException):
    """raised while splitting a raw line; no Command is produced."""


class MissingPrefixError(LexicalError):
    __code__ = FaultCode.MISSING_PREFIX


class UnterminatedQuoteError(LexicalError):
    __code__ = FaultCode.UNTERMINATED_QUOTE


class DanglingEscapeError(LexicalError):
    __code__ = FaultCode.DANGLING_ESCAPE


class UnknownCommandError(CommandException):
    __code__ = FaultCode.UNKNOWN_COMMAND


class BindingError(CommandException):
    """raised while binding a Command against a Schema; the body never runs."""


class MissingArgumentError(BindingError):
    __code__ = FaultCode.MISSING_ARGUMENT


class ArgumentTypeError(BindingError):
    __code__ = FaultCode.UNCASTABLE_ARGUMENT


class MultipleOccurrencesError(BindingError):
    __code__ = FaultCode.MULTIPLE_OCCURRENCES


class InvalidSubcommandError(BindingError):
    __code__ = FaultCode.INVALID_SUBCOMMAND


class DelegatedCommandError(CommandException):
    __code__ = FaultCode.DELEGATED_ERROR


class CommandWarning(Warning):
    """
    base class of command-layer warnings (rendered in shell mode, warned otherwise).
    """
    __code__ = None

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(message or "")
        self.message = message or ""
        self.options = MappingProxyType(options)

    @property
    def code(self):
        return self.options.get("code", type(self).__code__)

    def __str__(self):
        return self.message

    def __rich__(self):
        return _render(self, "warning", {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #FFB400",  # amber fault code for warnings
            "warning-title": "bold #FFC2E0",  # softer pinky title for warnings

            # body
            "warning-message": "#D6D6DE",  # slightly lighter gray body
            "hint-arrow": "#B8EFAF dim",  # softer green arrow
            "hint": "italic #B8EFAF",  # softer green hint text
        })

    def __trigger__(self):
        if not self.options.get("shell", False):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class ReplayedLookupWarning(CommandWarning):
    __code__ = FaultCode.REPLAYED_LOOKUP


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via copy.replace() before triggering.
    - in shell mode, rendering happens via the rich console; otherwise exceptions
      are raised and warnings are emitted through the warnings module.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys are
    FaultCode instances and values are short documentation strings.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "FaultCode",
    "CommandException",
    "LexicalError",
    "MissingPrefixError",
    "UnterminatedQuoteError",
    "DanglingEscapeError",
    "UnknownCommandError",
    "BindingError",
    "MissingArgumentError",
    "ArgumentTypeError",
    "MultipleOccurrencesError",
    "InvalidSubcommandError",
    "DelegatedCommandError",
    "CommandWarning",
    "ReplayedLookupWarning",
    "trigger",
    "getdoc",
    "stylesheet",
)
