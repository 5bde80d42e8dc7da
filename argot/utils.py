"""
Argot utilities (internal helpers, carefully exposed)

Scope
- Small building blocks shared by the lexer, the argument specs, the schemas and
  the registry so they agree on "not provided" semantics and read-only state.

Overview
- UnsetType / Unset
  • Singleton sentinel representing "value not provided" without conflating it
    with None (None is a legitimate lookup result and a legitimate account).
  • Falsey, printable as "Unset", non-subclassable.

- coalesce(value, default=None)
  • Replace Unset with a concrete default; every other value (None, 0, "", [])
    is preserved.

- rename(callable, name) / @rename("name")
  • Assign stable __name__/__qualname__ to generated callables (completion
    providers, wrapped callbacks) so tracebacks stay readable.

- mirror("attr")
  • Read-only property over a private backing field (self._attr). Containers
    are exposed as immutable views (tuple / MappingProxyType / frozenset).

- IntrospectableType
  • Metaclass wiring mirror() properties for every name in __introspectable__
    and providing stable __repr__/__rich_repr__ implementations.

Quick examples
    >>> coalesce(Unset, "fallback")
    'fallback'
    >>> coalesce(None, "fallback") is None
    True
"""
import builtins
import functools
import operator
import re
from collections.abc import Sequence, Mapping, Set
from types import MappingProxyType
from typing import final


@final
class UnsetType:
    """
    Internal sentinel type representing a value that was not provided.

    Characteristics
    - Boolean-false: bool(Unset) is False, but it is distinct from None and 0.
    - Printable: repr(Unset) -> "Unset".
    - Non-subclassable and a singleton per process.
    """

    def __or__(self, other, /):
        """
        Support PEP 604 unions in isinstance checks (e.g., str | Unset).
        """
        try:
            return type(self) | other
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo, /):
        return self

    def __reduce__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


Unset = UnsetType()
"""
Internal sentinel for "not provided".

Use Unset as a default when None is a valid, user-meaningful value but "no input"
still has to be distinguished. Materialize it with coalesce(value, default).
"""


def coalesce(object, default=None, /):
    """
    Resolve the Unset sentinel to a concrete default.

    Returns `object` unless it is Unset, in which case `default` is returned.
    Falsey values like None, 0 or "" are preserved as-is.
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Set a stable __name__/__qualname__ on a callable, or return a decorator
    that will do so later.

    Forms
    - rename(callable, name) -> callable
    - @rename(name)
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be a updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                if not builtins.callable(callable):
                    raise TypeError("@rename() must be applied to a callable")
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def _freeze(object):
    """
    Shallow, read-only view of a container (tuple / MappingProxyType / frozenset).
    """
    if isinstance(object, Sequence) and not isinstance(object, str):
        return tuple(object)
    elif isinstance(object, Mapping):
        return MappingProxyType(object)
    elif isinstance(object, Set):
        return frozenset(object)
    return object


def mirror(name, /):
    """
    Define a read-only property that mirrors the private backing attribute "_{name}".

    Container values are returned as immutable views so the public API cannot be
    used to mutate internal state.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _freeze(getattr(self, "_" + name))

    return property(getter)


class IntrospectableType(type):
    """
    Metaclass publishing declared fields as read-only, introspectable attributes.

    Responsibilities
    - Expose every name listed in __introspectable__ through mirror().
    - Derive __typename__ from the class name (camel-case split with hyphens),
      used in diagnostics and validation messages.
    - Provide a compact __repr__ and a __rich_repr__ for pretty printers. The
      shown fields come from __displayable__ when set, else __introspectable__.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
            **options
        )

        if "__repr__" not in namespace:
            @rename("__repr__")
            def __repr__(self):
                return f"{type(self).__typename__}({
                    ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
                })"
            self.__repr__ = __repr__

        if "__rich_repr__" not in namespace:
            @rename("__rich_repr__")
            def __rich_repr__(self):
                for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                    yield name, getattr(self, name)
            self.__rich_repr__ = __rich_repr__

        return self


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",

    # Types
    "UnsetType",
    "IntrospectableType",

    # Constants
    "Unset",
)
