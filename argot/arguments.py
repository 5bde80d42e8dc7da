r"""
Argot argument specifications.

Overview
- Specs (one per slot kind)
  • Required[_T]: positional value that must be present.
  • Optional[_T]: positional value that may be absent; falls back to a lookup hook, then None.
  • Named[_T]: "name=value" token found anywhere after the command name; removed from the line once bound.
  • Secret[_T]: positional value that, when absent and not found by its lookup,
    defers the command until the user supplies it out of band.
  • Subcommand: the token at its position selects a child schema which binds the rest of the line.

- Hooks
  • lookup(context, command) -> value | None: fallback for absent Optional/Secret slots.
  • completion(context, command) -> Iterable[str]: suggestions for the slot under the cursor.

- Introspection & representation
  • Fields listed in __introspectable__ are exposed as read-only properties.
  • Specs are immutable; copy.replace(spec, name="...") derives a renamed copy
    (schemas use it to name slots after the callback parameters).

Metadata (sanitized on construction)
- type: a registered decoder tag (str, int, ...) or any callable converter.
- name: Unset | identifier (assigned later from the callback signature when Unset).
- descr: Unset | str (short help), non-empty when provided.
- lookup / completion: Unset | callable.

Quick example:
    >>> from argot.arguments import Required, Optional, Named, Secret
    >>> jid = Required(str, descr="address to join")
    >>> nick = Optional(str, lookup=lambda context, command: context.nickname)
    >>> password = Secret()
"""
import re

from .decoders import Password, resolve
from .utils import *


def _sanitize_metadata(cls, metadata, /):
    """
    Internal: normalize and validate metadata shared by every spec.

    - name: Unset or an identifier-like string (letters, digits, underscores).
    - descr: Unset or a non-empty string after trimming; Unset becomes None.
    """
    if not isinstance(name := metadata["name"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'name' must be a string")
    elif isinstance(name, str) and not re.fullmatch(r"[^\W\d]\w*", name := name.strip()):
        raise ValueError(f"{cls.__typename__} 'name' must be a valid identifier")
    metadata["name"] = name

    if not isinstance(descr := metadata["descr"], str | Unset):
        raise TypeError(f"{cls.__typename__} 'descr' must be a string")
    elif isinstance(descr, str) and not (descr := descr.strip()):
        raise ValueError(f"{cls.__typename__} 'descr' cannot be empty")
    metadata["descr"] = coalesce(descr)


def _sanitize_hooks(cls, metadata, /):
    """
    Internal: validate the decoder tag and the optional lookup/completion hooks.
    """
    if "type" in metadata:
        try:
            resolve(metadata["type"])
        except TypeError:
            raise TypeError(f"{cls.__typename__} 'type' must be a decoder tag or a callable") from None

    for hook in ("lookup", "completion"):
        if hook in metadata and metadata[hook] is not Unset and not callable(metadata[hook]):
            raise TypeError(f"{cls.__typename__} {hook!r} must be callable")


class Argument(metaclass=IntrospectableType):
    """
    Base of every slot specification.

    Subclasses declare their fields in __introspectable__; __new__ stores the
    sanitized metadata under private names which the metaclass mirrors back as
    read-only properties.
    """
    __introspectable__ = ()

    @classmethod
    def _build(cls, metadata):
        self = super().__new__(cls)
        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        return self

    def __replace__(self, /, **overrides):
        fields = {name: getattr(self, name) for name in type(self).__introspectable__}
        unknown = overrides.keys() - fields.keys()
        if unknown:
            raise TypeError(f"{type(self).__typename__} has no field {min(unknown)!r}")
        fields |= overrides
        if fields["descr"] is None:
            fields["descr"] = Unset
        return type(self)(fields.pop("type"), **fields)

    def provider(self):
        """
        Completion provider for this slot, or None for "no suggestions".
        """
        completion = getattr(self, "completion", Unset)
        if completion is Unset:
            return None

        @rename("%s_completion" % (self.name or type(self).__typename__))
        def provider(context, command):
            return list(completion(context, command))

        return provider


class Required[_T](Argument):
    """
    Positional value that must be present.

    Binding fails with "Missing <name> argument" when the line has no token at
    the slot's position; the token is decoded with the slot's type otherwise.
    """
    __introspectable__ = (
        "type",
        "name",
        "descr",
        "completion",
    )

    def __new__(cls, type=str, /, name=Unset, descr=Unset, *, completion=Unset):
        metadata = {
            "type": type,
            "name": name,
            "descr": descr,
            "completion": completion,
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_hooks(cls, metadata)
        return cls._build(metadata)


class Optional[_T](Argument):
    """
    Positional value that may be absent.

    When absent, the lookup hook (if any) supplies the value, otherwise None.
    The slot always occupies its position, present or not.
    """
    __introspectable__ = (
        "type",
        "name",
        "descr",
        "lookup",
        "completion",
    )

    def __new__(cls, type=str, /, name=Unset, descr=Unset, *, lookup=Unset, completion=Unset):
        metadata = {
            "type": type,
            "name": name,
            "descr": descr,
            "lookup": lookup,
            "completion": completion,
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_hooks(cls, metadata)
        return cls._build(metadata)


class Named[_T](Argument):
    """
    "name=value" argument matched anywhere after the command name.

    Every token starting with the slot name is removed from the line; zero
    matches bind None, one match decodes the text after the first "=", more
    than one fails with "Multiple occurance of <name> argument". Positional
    slots declared afterwards see the shortened line.
    """
    __introspectable__ = (
        "type",
        "name",
        "descr",
        "completion",
    )

    def __new__(cls, type=str, /, name=Unset, descr=Unset, *, completion=Unset):
        metadata = {
            "type": type,
            "name": name,
            "descr": descr,
            "completion": completion,
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_hooks(cls, metadata)
        return cls._build(metadata)


class Secret[_T](Argument):
    """
    Positional secret (typically a password).

    A token typed in plain text is accepted as-is. Otherwise the lookup hook is
    asked; when it has nothing, the command is deferred: a RequestSecret event
    is scheduled and the command body does not run until the line is submitted
    again with the secret appended.
    """
    __introspectable__ = (
        "type",
        "name",
        "descr",
        "lookup",
        "completion",
    )

    def __new__(cls, type=Password, /, name=Unset, descr=Unset, *, lookup=Unset, completion=Unset):
        metadata = {
            "type": type,
            "name": name,
            "descr": descr,
            "lookup": lookup,
            "completion": completion,
        }
        _sanitize_metadata(cls, metadata)
        _sanitize_hooks(cls, metadata)
        return cls._build(metadata)


class Subcommand(Argument):
    """
    Routes the rest of the line to a child schema.

    The token at the slot's position must name one of the children exactly; the
    child then binds a command made of the tokens from that position onward (so
    it sees its own name first). Completion at this slot lists the child names.
    """
    __introspectable__ = (
        "children",
        "name",
        "descr",
    )

    def __new__(cls, children=(), /, name=Unset, descr=Unset):
        metadata = {
            "children": {},
            "name": name,
            "descr": descr,
        }
        _sanitize_metadata(cls, metadata)
        self = cls._build(metadata)

        if hasattr(children, "values") and callable(children.values):
            children = children.values()
        for child in children:
            self._attach(child)
        return self

    def _attach(self, child, /):
        """
        Register `child` under its name; names are unique per subcommand slot.
        """
        from .schemas import Schema

        if not isinstance(child, Schema):
            raise TypeError(f"{type(self).__typename__} children must be schemas")
        if self._children.setdefault(child.name, child) is not child:
            raise ValueError(f"{type(self).__typename__} child name {child.name!r} is already in use")
        return child

    def __replace__(self, /, **overrides):
        fields = {name: getattr(self, name) for name in type(self).__introspectable__}
        unknown = overrides.keys() - fields.keys()
        if unknown:
            raise TypeError(f"{type(self).__typename__} has no field {min(unknown)!r}")
        fields |= overrides
        if fields["descr"] is None:
            fields["descr"] = Unset
        return type(self)(fields.pop("children"), **fields)

    def provider(self):
        children = self._children

        @rename("%s_completion" % (self.name or "subcommand"))
        def provider(context, command):
            return list(children)

        return provider


__all__ = (
    "Argument",
    "Required",
    "Optional",
    "Named",
    "Secret",
    "Subcommand",
)
