"""
Tiller flag layer: flag specs, registries and per-pass resolution results.

What this module provides
- Flag: an immutable, introspectable flag spec (name, short alias, kind, default,
  environment names, positional/required markers, validator, write target).
- FlagSet: an ordered registry of flags owned by one command. It tokenizes
  command-line input (parse) and maps leftover positionals onto positional
  flags (map_positionals).
- Values: the outcome of one resolution pass over a FlagSet. Every bound flag
  has a Binding (value, raw string, Source), so provenance never lives on the
  long-lived Flag objects and repeated runs over the same tree stay independent.

Precedence
- Values.merge() fills flags from the environment, the config store and the
  declared defaults (first hit wins) before the command line is parsed.
- FlagSet.parse() then overrides with command-line values.
- Source orders the outcome: PROMPT > COMMAND_LINE > ENVIRONMENT > CONFIG > DEFAULT.
  PROMPT marks values answered interactively for required flags nothing else set.

Token grammar (parse)
- "--" ends flag scanning; everything after it is positional verbatim.
- "--name=value", "--name value", "-x=value", "-x value" bind a value.
- A boolean flag given without "=value" binds "true".
- A bare "-" and any token not starting with "-" are positionals.
- Unknown flags raise in strict mode, otherwise they are kept as positionals.
"""
import logging
import os
from collections import deque
from enum import IntEnum
from typing import NamedTuple

from .faults import *
from .kinds import Kind
from .utils import SpecType, Unset, coalesce, envname, labelize

logger = logging.getLogger(__name__)


class Source(IntEnum):
    """
    Where a bound value came from, ordered by precedence (higher wins).
    """
    DEFAULT = 1
    CONFIG = 2
    ENVIRONMENT = 3
    COMMAND_LINE = 4
    PROMPT = 5


class Binding(NamedTuple):
    """
    One resolved flag value: the coerced value, the raw string it came from and its source.
    """
    value: object
    raw: str
    source: Source


def _sanitize_name(cls, name, field, /):
    if not isinstance(name, str):
        raise TypeError(f"{cls.__typename__} {field!r} must be a string")
    if not name:
        raise ValueError(f"{cls.__typename__} {field!r} cannot be empty")
    if name.startswith("-") or "=" in name or any(character.isspace() for character in name):
        raise ValueError(f"{cls.__typename__} {field!r} must be a bare name (no dashes prefix, '=' or spaces)")
    return name


class Flag(metaclass=SpecType):
    """
    Named, optionally short-aliased setting of a command.

    Parameters
    - name: long name, matched as "--name".
    - kind: Kind of the value (Kind.STRING by default).
    - short: single-character alias, matched as "-x".
    - target: optional callable receiving every coerced value bound to the flag.
    - default: string form of the default value; "" or Unset means no default.
    - env: explicit environment variable; when Unset the derived PREFIX_NAME is used.
    - env_aliases: extra environment variables checked after env.
    - positional: leftover positionals may bind to this flag (never for booleans).
    - required: the flag must resolve from some source before the command runs.
    - validate: callable(raw) raising ValueError with a user-facing message.
    - usage / prompt / hidden: help text, prompt label and help visibility.

    Raises
    - TypeError / ValueError on malformed definitions, including a boolean
      positional flag.
    """

    __introspectable__ = (
        "name",
        "kind",
        "short",
        "default",
        "env",
        "env_aliases",
        "positional",
        "required",
        "usage",
        "prompt",
        "hidden",
        "target",
        "validate",
    )

    __displayable__ = (
        "name",
        "kind",
        "short",
        "default",
        "positional",
        "required",
    )

    def __init__(
            self,
            name,
            /,
            kind=Kind.STRING,
            *,
            short=Unset,
            target=Unset,
            default=Unset,
            env=Unset,
            env_aliases=(),
            positional=False,
            required=False,
            validate=Unset,
            usage=Unset,
            prompt=Unset,
            hidden=False,
    ):
        cls = type(self)
        self._name = _sanitize_name(cls, name, "name")

        if not isinstance(kind, Kind):
            raise TypeError(f"{cls.__typename__} 'kind' must be a Kind member")
        self._kind = kind

        if short is not Unset:
            _sanitize_name(cls, short, "short")
            if len(short) != 1:
                raise ValueError(f"{cls.__typename__} 'short' must be a single character")
        self._short = coalesce(short)

        if not isinstance(default, str | Unset):
            raise TypeError(f"{cls.__typename__} 'default' must be a string (the raw form of the value)")
        self._default = coalesce(default, "")

        if not isinstance(env, str | Unset):
            raise TypeError(f"{cls.__typename__} 'env' must be a string")
        self._env = coalesce(env, "")

        if isinstance(env_aliases, str) or not all(isinstance(x, str) and x for x in env_aliases):
            raise TypeError(f"{cls.__typename__} 'env_aliases' must be an iterable of non-empty strings")
        self._env_aliases = tuple(env_aliases)

        if positional and kind is Kind.BOOL:
            raise ValueError(f"{cls.__typename__} {name!r} is boolean and cannot be positional")
        self._positional = bool(positional)
        self._required = bool(required)

        for field, callback in (("target", target), ("validate", validate)):
            if callback is not Unset and not callable(callback):
                raise TypeError(f"{cls.__typename__} {field!r} must be callable")
        self._target = coalesce(target)
        self._validate = coalesce(validate)

        for field, text in (("usage", usage), ("prompt", prompt)):
            if not isinstance(text, str | Unset):
                raise TypeError(f"{cls.__typename__} {field!r} must be a string")
        self._usage = coalesce(usage, "")
        self._prompt = coalesce(prompt, "")
        self._hidden = bool(hidden)

    @property
    def label(self):
        """
        Prompt label: the explicit prompt, else the title-cased name.
        """
        return self._prompt or labelize(self._name)

    @property
    def spellings(self):
        """
        Command-line spellings of this flag: ("--name",) or ("--name", "-x").
        """
        return (f"--{self._name}",) + ((f"-{self._short}",) if self._short else ())

    def coerce(self, raw, /, *, positional=False):
        """
        Coerce and validate a raw value for this flag.

        Raises
        - InvalidValueError when the kind rejects the raw string (chained to the parse error).
        - ValidationError when the validator rejects it.
        """
        subject = f"positional argument {self._name}" if positional else self._name
        try:
            value = self._kind.coerce(raw)
        except ValueError as exception:
            raise InvalidValueError(
                f"invalid value for {subject}: {exception}",
                title="invalid value",
                code=FaultCode.INVALID_VALUE,
                hint=f"--{self._name} expects a {self._kind.value} value",
                flag=self._name,
                value=raw,
                exception=exception,
            ) from exception
        if self._validate is not None:
            try:
                self._validate(raw)
            except ValueError as exception:
                raise ValidationError(
                    str(exception),
                    title="invalid value",
                    code=FaultCode.VALIDATION_FAILED,
                    hint=f"check the value given to {subject}",
                    flag=self._name,
                    value=raw,
                    exception=exception,
                ) from exception
        return value


class Values:
    """
    Resolved flag values of one FlagSet for one resolution pass.

    Lookups accept a flag name; unbound flags read as Unset from get() and
    raise KeyError from item access.
    """

    def __init__(self, flagset, /):
        self._flagset = flagset
        self._bindings = {}

    @property
    def flagset(self):
        return self._flagset

    def bind(self, flag, raw, source, /, *, positional=False):
        """
        Coerce, validate and record a raw value for flag; returns the coerced value.

        Nothing is recorded when coercion or validation fails.
        """
        value = flag.coerce(raw, positional=positional)
        self._bindings[flag.name] = Binding(value, raw, source)
        if flag.target is not None:
            flag.target(value)
        logger.debug("bound %s=%r from %s", flag.name, raw, source.name.lower())
        return value

    def merge(self, prefix="", config=None, environ=None):
        """
        Fill every flag not already bound in this pass from, in order:
        1. the flag's env variable, then its env_aliases;
        2. the derived PREFIX_NAME variable;
        3. the config store entry named after the flag;
        4. the flag's non-empty default.

        A candidate the flag rejects (InvalidValueError / ValidationError) is
        logged at debug level and skipped, and the next source is tried.
        Flags already bound are skipped, so merging twice is harmless.
        """
        environ = os.environ if environ is None else environ
        for flag in self._flagset:
            if flag.name in self._bindings:
                continue
            for raw, source in self._candidates(flag, prefix, config, environ):
                try:
                    self.bind(flag, raw, source)
                except (InvalidValueError, ValidationError) as exception:
                    logger.debug("ignored %s value %r for %s: %s", source.name.lower(), raw, flag.name, exception)
                    continue
                break
        return self

    @staticmethod
    def _candidates(flag, prefix, config, environ, /):
        """
        internal helper: yield (raw, source) pairs for flag in precedence order.

        notes
        - only the first environment variable present is offered.
        """
        for name in (flag.env, *flag.env_aliases, envname(prefix, flag.name)):
            if name and name in environ:
                yield environ[name], Source.ENVIRONMENT
                break
        value, found = config.get(flag.name) if config is not None else (None, False)
        if found:
            yield value, Source.CONFIG
        if flag.default:
            yield flag.default, Source.DEFAULT

    def binding(self, name, /):
        return self._bindings.get(name)

    def get(self, name, default=Unset, /):
        """
        Return the bound value of flag name, else default (Unset when omitted).
        """
        binding = self._bindings.get(name)
        return default if binding is None else binding.value

    def source(self, name, /):
        """
        Return the Source of flag name, or None when nothing bound it.
        """
        binding = self._bindings.get(name)
        return None if binding is None else binding.source

    def is_set(self, name, /):
        return name in self._bindings

    def is_cli_set(self, name, /):
        return self.source(name) is Source.COMMAND_LINE

    def any_cli_set(self):
        return any(binding.source is Source.COMMAND_LINE for binding in self._bindings.values())

    def missing_required(self):
        """
        Required flags no source has bound, in registration order.
        """
        return [flag for flag in self._flagset if flag.required and flag.name not in self._bindings]

    def __getitem__(self, name):
        return self._bindings[name].value

    def __contains__(self, name):
        return name in self._bindings

    def __iter__(self):
        return iter(self._bindings)

    def __len__(self):
        return len(self._bindings)

    def __repr__(self):
        return f"values({", ".join(f"{name}={binding.value!r}" for name, binding in self._bindings.items())})"


class FlagSet:
    """
    Ordered flag registry owned by exactly one command.

    Parameters
    - name: owner label used in messages.
    - strict: when True, unknown flags raise UnknownFlagError; otherwise they
      are passed through as positionals (the default).
    """

    def __init__(self, name=Unset, /, *, strict=False):
        self._name = coalesce(name, "")
        self._strict = bool(strict)
        self._flags = []
        self._index = {}

    @property
    def name(self):
        return self._name

    @property
    def strict(self):
        return self._strict

    @strict.setter
    def strict(self, strict):
        self._strict = bool(strict)

    def register(self, flag, /):
        """
        Add a flag; raises DuplicateFlagError when its name or short alias is taken.
        """
        if not isinstance(flag, Flag):
            raise TypeError("register() argument must be a flag")
        for spelling in flag.spellings:
            if spelling in self._index:
                raise DuplicateFlagError(
                    f"flag {spelling} is already registered{f" on {self._name}" if self._name else ""}",
                    title="duplicate flag",
                    code=FaultCode.DUPLICATE_FLAG,
                    hint="flag names and short aliases must be unique within a command",
                    flag=flag.name,
                )
        self._flags.append(flag)
        self._index.update(dict.fromkeys(flag.spellings, flag))
        return flag

    def add(self, name, /, kind=Kind.STRING, **options):
        """
        Build a Flag from the arguments, register it and return it.
        """
        return self.register(Flag(name, kind, **options))

    def add_string(self, name, /, **options):
        return self.add(name, Kind.STRING, **options)

    def add_bool(self, name, /, **options):
        return self.add(name, Kind.BOOL, **options)

    def add_int(self, name, /, **options):
        return self.add(name, Kind.INT, **options)

    def add_int64(self, name, /, **options):
        return self.add(name, Kind.INT64, **options)

    def add_float(self, name, /, **options):
        return self.add(name, Kind.FLOAT64, **options)

    def add_duration(self, name, /, **options):
        return self.add(name, Kind.DURATION, **options)

    def lookup(self, name, /):
        """
        Return the flag called name (or spelled "--name"/"-x"), else None.
        """
        return self._index.get(name if name.startswith("-") else f"--{name}")

    @property
    def flags(self):
        return tuple(self._flags)

    @property
    def positionals(self):
        """
        Positional flags in registration order.
        """
        return tuple(flag for flag in self._flags if flag.positional)

    def values(self):
        """
        Start a fresh resolution pass over this registry.
        """
        return Values(self)

    def parse(self, tokens, values, /, *, strict=Unset):
        """
        Consume flag tokens into values and return the remaining positional tokens.

        Raises
        - UnknownFlagError (strict mode), MissingValueError, InvalidValueError,
          ValidationError.
        """
        strict = coalesce(strict, self._strict)
        tokens = deque(tokens)
        remaining = []

        while tokens:
            token = tokens.popleft()
            if token == "--":
                remaining.extend(tokens)
                break
            if not token.startswith("-") or token == "-":
                remaining.append(token)
                continue

            name, equals, value = token.partition("=")
            if (flag := self._index.get(name)) is None:
                if strict:
                    raise UnknownFlagError(
                        f"unknown flag: {name}",
                        title="unknown flag",
                        code=FaultCode.UNKNOWN_FLAG,
                        hint=f"run '{self._name} --help' to list the accepted flags" if self._name else "check the flag spelling",
                        token=token,
                    )
                remaining.append(token)
                continue

            if not equals:
                if flag.kind is Kind.BOOL:
                    values.bind(flag, "true", Source.COMMAND_LINE)
                    continue
                if not tokens:
                    raise MissingValueError(
                        f"flag {name} requires a value",
                        title="missing value",
                        code=FaultCode.MISSING_VALUE,
                        hint=f"use {name}=<{flag.kind.value}> or {name} <{flag.kind.value}>",
                        flag=flag.name,
                    )
                value = tokens.popleft()
            values.bind(flag, value, Source.COMMAND_LINE)

        return remaining

    def map_positionals(self, tokens, values, /):
        """
        Bind leftover tokens, in order, to positional flags the command line has
        not bound yet; returns the tokens left over once those run out.
        """
        tokens = list(tokens)
        index = 0
        for flag in self.positionals:
            if index >= len(tokens):
                break
            if values.is_cli_set(flag.name):
                continue
            values.bind(flag, tokens[index], Source.COMMAND_LINE, positional=True)
            index += 1
        return tokens[index:]

    def __iter__(self):
        return iter(self._flags)

    def __len__(self):
        return len(self._flags)

    def __contains__(self, name):
        return self.lookup(name) is not None

    def __repr__(self):
        return f"flag-set(name={self._name!r}, flags={[flag.name for flag in self._flags]!r})"


__all__ = (
    "Source",
    "Binding",
    "Flag",
    "Values",
    "FlagSet",
)
