"""
Argot decoders: convert one token into one typed value.

A decoder is a function `token -> value` that signals failure by raising
ValueError or TypeError. Decoders are selected by a type tag declared on the
argument spec (Required(int), Named(bool), ...). Tags are registered with
@decoder(tag); a plain callable that is not a registered tag is accepted as its
own decoder, the way converters are usually given to argument parsers.

Built-in tags: str, int, float, bool and Password.
"""
from .utils import *

_decoders = {}


class Password(str):
    """
    A string that never shows its value in representations.
    """
    __slots__ = ()

    def __repr__(self):
        return "Password('********')"

    def __rich_repr__(self):
        yield "********"


def decoder(tag, /):
    """
    Register the decorated function as the decoder for `tag`.

    Re-registering a tag replaces the previous decoder.
    """
    if not isinstance(tag, type):
        raise TypeError("@decoder() argument must be a type")

    @rename("decoder")
    def wrapper(function, /):
        if not callable(function):
            raise TypeError("@decoder() must be applied to a callable")
        _decoders[tag] = function
        return function

    return wrapper


def resolve(tag, /):
    """
    Return the decoder function for `tag`.

    Registered tags win; any other callable decodes by being called with the
    token. Non-callables raise TypeError.
    """
    try:
        return _decoders[tag]
    except (KeyError, TypeError):
        pass
    if not callable(tag):
        raise TypeError("decoder tag must be a registered type or a callable")
    return tag


def label(tag, /):
    """
    Human-readable name of a type tag, used in decode error messages.
    """
    return getattr(tag, "__name__", None) or type(tag).__name__


def decode(tag, token, /):
    """
    Decode `token` with the decoder selected by `tag`.
    """
    return resolve(tag)(token)


@decoder(str)
def _decode_str(token):
    return token


@decoder(int)
def _decode_int(token):
    return int(token.strip())


@decoder(float)
def _decode_float(token):
    return float(token.strip())


_BOOLEANS = {
    "true": True,
    "yes": True,
    "on": True,
    "1": True,
    "false": False,
    "no": False,
    "off": False,
    "0": False,
}


@decoder(bool)
def _decode_bool(token):
    try:
        return _BOOLEANS[token.strip().lower()]
    except KeyError:
        raise ValueError("expected one of %s" % ", ".join(_BOOLEANS)) from None


@decoder(Password)
def _decode_password(token):
    return Password(token)


__all__ = (
    "Password",
    "decoder",
    "resolve",
    "label",
    "decode",
)
