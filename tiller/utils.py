"""
Tiller utilities shared by the flag, argument, command and app layers.

Contents
- Unset: "nothing was passed" marker, distinct from None and "" (both are real
  values for defaults, env names and usage texts). It is falsey, prints as
  "Unset" and joins PEP 604 unions, so "str | Unset" works in isinstance().
- coalesce(value, default): swap Unset for default, keep every other value.
- rename("name"): decorator pinning __name__/__qualname__ of generated callables.
- mirror("attr"): read-only property over self._attr; mutable containers are
  handed out as copies.
- SpecType: metaclass of the definition objects (Flag, Argument, Command).
- envname(prefix, name) / labelize(name): name derivations.

    >>> coalesce(Unset, "fallback")
    'fallback'
    >>> envname("DEMO", "dry-run")
    'DEMO_DRY_RUN'
    >>> labelize("project-id")
    'Project Id'
"""
import functools
import re
from typing import final


@final
class UnsetType:
    """
    internal sentinel type behind Unset.

    behavior
    - a single cached instance; constructing the type again returns it.
    - falsey, and printed as "Unset".
    - usable inside PEP 604 unions ("str | Unset") for isinstance() checks.
    """

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __or__(self, other, /):
        try:
            return type(self) | other
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("UnsetType cannot be subclassed")


Unset = UnsetType()


def coalesce(object, default=None, /):
    """
    internal helper: return `default` when `object` is Unset, otherwise `object`.

    parameters
    - object: any
      candidate value that may be the Unset sentinel.
    - default: any (positional-only)
      replacement used when `object is Unset`; None when omitted.

    notes
    - falsey values ("", 0, None) are returned unchanged.
    """
    return default if object is Unset else object


def rename(name, /):
    """
    Decorator setting __name__ and __qualname__ of a callable to name.
    """
    if not isinstance(name, str):
        raise TypeError("rename() argument must be a string")

    def decorator(callable, /):
        callable.__name__ = callable.__qualname__ = name
        return callable

    return decorator


def mirror(name, /):
    """
    Read-only property exposing self._<name>; lists, dicts and sets are copied.
    """
    @rename(name)
    def getter(self):
        value = getattr(self, f"_{name}")
        return type(value)(value) if isinstance(value, list | dict | set) else value

    return property(getter)


class SpecType(type):
    """
    Metaclass of the definition objects.

    - __typename__: the class name in kebab case ("FlagSet" -> "flag-set"), used
      as the subject of definition errors ("flag 'short' must ...").
    - __introspectable__: field names exposed read-only through mirror().
    - __displayable__: the subset shown by __repr__/__rich_repr__ (all
      introspectable fields when Unset).
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        fields = {field: mirror(field) for field in namespace.get("__introspectable__", ())}
        typename = re.sub(r"(?<!^)(?=[A-Z])", "-", name).lower()
        return super().__new__(cls, name, bases, {**namespace, **fields, "__typename__": typename})

    def __init__(self, name, bases, namespace, **options):
        super().__init__(name, bases, namespace)

        @rename("__rich_repr__")
        def __rich_repr__(instance):
            for field in coalesce(self.__displayable__, self.__introspectable__):
                yield field, getattr(instance, field)

        @rename("__repr__")
        def __repr__(instance):
            fields = ", ".join(f"{field}={value!r}" for field, value in instance.__rich_repr__())
            return f"{self.__typename__}({fields})"

        self.__rich_repr__ = __rich_repr__
        self.__repr__ = __repr__


def envname(prefix, name, /):
    """
    Environment variable derived for a flag: PREFIX_UPPER_SNAKE(name), or the
    bare upper-snake name when prefix is empty.
    """
    name = name.replace("-", "_").upper()
    return f"{prefix}_{name}" if prefix else name


def labelize(name, /):
    """
    Prompt label derived from a name ("project-id" -> "Project Id").
    """
    return " ".join(word[:1].upper() + word[1:] for word in name.replace("-", " ").split(" ") if word)


__all__ = (
    "Unset",
    "UnsetType",
    "coalesce",
)
