"""
Argot serializer: turn tokens back into an editable command line.

escape() quotes a single token as little as possible; assemble() joins escaped
tokens behind the "/" prefix. lex(assemble(args)).args == args for every token
sequence. The output does not have to match what the user typed originally.
"""
import enum

from .commands import PREFIX


class _Quote(enum.Enum):
    # spaces seen, no quote character forced a style yet
    PENDING = " "
    SINGLE = "'"
    DOUBLE = '"'


def escape(token, /):
    """
    Quote `token` so that it lexes back to itself as one token.

    - backslashes are always escaped;
    - a token with spaces is wrapped in double quotes, unless a quote
      character decided the style first;
    - the first quote character met picks the other quote style, so it can be
      written literally ("fo'o" and 'fo"o'); later occurrences of the chosen
      quote character are backslash-escaped.
    """
    if not isinstance(token, str):
        raise TypeError("escape() argument must be a string")

    if not token:
        # an empty token survives only as an empty quoted segment
        return "\"\""

    quote = None
    escaped = []
    for char in token:
        match char:
            case "\\":
                escaped.append("\\\\")
            case " ":
                if quote is None:
                    quote = _Quote.PENDING
                escaped.append(" ")
            case "'":
                if quote is _Quote.SINGLE:
                    escaped.append("\\'")
                else:
                    if quote is not _Quote.DOUBLE:
                        quote = _Quote.DOUBLE
                    escaped.append("'")
            case '"':
                if quote is _Quote.DOUBLE:
                    escaped.append('\\"')
                else:
                    if quote is not _Quote.SINGLE:
                        quote = _Quote.SINGLE
                    escaped.append('"')
            case _:
                escaped.append(char)

    if quote is _Quote.PENDING:
        quote = _Quote.DOUBLE

    escaped = "".join(escaped)
    if quote is None:
        return escaped
    return quote.value + escaped + quote.value


def assemble(tokens, /):
    """
    Join tokens into the canonical, re-editable command line ("/" + escaped tokens).
    """
    if isinstance(tokens, str):
        raise TypeError("assemble() argument must be an iterable of strings")
    tokens = list(tokens)
    if tokens == [""]:
        # the empty line lexes to a single empty token
        return PREFIX
    return PREFIX + " ".join(map(escape, tokens))


__all__ = (
    "escape",
    "assemble",
)
