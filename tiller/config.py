"""
Tiller configuration store.

- ConfigStore: the narrow protocol the resolution pipeline consumes
  (get/set/load/save/reset over string values).
- ConfigManager: the default store, a flat key -> string map persisted as YAML.
  Nested mappings in a loaded file are flattened to dotted keys
  ("project: {default: x}" reads as "project.default"). Scalars are kept in
  their raw string form; numeric and boolean coercion belongs to the flag layer.
- ConfigSchema: optional per-key kind and validator used by normalize() to
  canonicalize values before they are stored.

Files
- A missing file loads as empty. Loading merges into the current values.
- Saving writes keys sorted, through a temporary file replaced atomically.
"""
import contextlib
import datetime
import logging
import os
from typing import NamedTuple, Protocol, runtime_checkable

import yaml

from .faults import *
from .kinds import Kind

logger = logging.getLogger(__name__)


@runtime_checkable
class ConfigStore(Protocol):
    def get(self, key, /) -> tuple[str, bool]: ...

    def set(self, key, value, /) -> None: ...

    def load(self, path, /) -> None: ...

    def save(self, path, /) -> None: ...

    def reset(self) -> None: ...


class ConfigSchema(NamedTuple):
    """
    Expected kind (and optional validator) of one config key.
    """
    key: str
    kind: Kind = Kind.STRING
    validate: object = None


def _flatten(mapping, prefix=""):
    for key, value in mapping.items():
        key = f"{prefix}{key}"
        if isinstance(value, dict):
            yield from _flatten(value, f"{key}.")
        elif isinstance(value, bool):
            yield key, Kind.BOOL.format(value)
        elif isinstance(value, float):
            yield key, Kind.FLOAT64.format(value)
        elif value is None:
            yield key, ""
        elif isinstance(value, str | int | datetime.date):
            yield key, str(value)
        else:
            raise TypeError(f"unsupported value for {key!r}: {type(value).__name__}")


class ConfigManager:
    """
    Default ConfigStore backed by a YAML file.

    Parameters
    - name: owning application name (informational).
    """

    def __init__(self, name="", /):
        self._name = name
        self._values = {}
        self._schemas = {}

    @property
    def name(self):
        return self._name

    def get(self, key, /):
        """
        Return (value, found) for key.
        """
        try:
            return self._values[key], True
        except KeyError:
            return "", False

    def set(self, key, value, /):
        if not isinstance(value, str):
            raise TypeError("set() value must be a string")
        self._values[key] = value

    def delete(self, key, /):
        """
        Remove key; returns whether it existed.
        """
        return self._values.pop(key, None) is not None

    def reset(self):
        self._values.clear()

    def values(self):
        """
        Return a copy of every stored key and value.
        """
        return dict(self._values)

    def read(self, key, kind=Kind.STRING, /):
        """
        Return (typed value, found) for key; found is False when the key is
        missing or its value does not parse as kind.
        """
        value, found = self.get(key)
        if not found:
            return kind.zero, False
        try:
            return kind.coerce(value.strip() if kind is not Kind.STRING else value), True
        except ValueError:
            return kind.zero, False

    def register_schema(self, *entries):
        for entry in entries:
            if not isinstance(entry, ConfigSchema):
                raise TypeError("register_schema() arguments must be config schemas")
            if entry.key:
                self._schemas[entry.key] = entry

    def normalize(self, key, value, /):
        """
        Validate and canonicalize value according to the schema of key.

        Keys without a schema are returned unchanged.

        Raises
        - ValueError when the value does not match the schema kind or fails its validator.
        """
        if (entry := self._schemas.get(key)) is None:
            return value
        if entry.kind is Kind.STRING:
            value = value.removesuffix("\n")
        else:
            try:
                value = entry.kind.format(entry.kind.coerce(value.strip()))
            except ValueError as exception:
                raise ValueError(f"expected {entry.kind.value} for {key!r}: {exception}") from exception
        if entry.validate is not None:
            entry.validate(value)
        return value

    def load(self, path, /):
        """
        Merge the values of the YAML file at path; a missing file is ignored.

        Raises
        - ConfigLoadError when the file is unreadable or not a UTF-8 YAML mapping.
        """
        try:
            with open(path, encoding="utf-8") as file:
                document = yaml.safe_load(file)
        except FileNotFoundError:
            logger.debug("no config file at %s", path)
            return
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exception:
            raise ConfigLoadError(
                f"failed to load config {os.fspath(path)!r}: {exception}",
                title="config unreadable",
                code=FaultCode.CONFIG_LOAD,
                hint="fix or remove the config file",
                path=os.fspath(path),
                exception=exception,
            ) from exception

        if document is None:
            return
        try:
            if not isinstance(document, dict):
                raise TypeError("top-level document must be a mapping")
            values = dict(_flatten(document))
        except TypeError as exception:
            raise ConfigLoadError(
                f"failed to load config {os.fspath(path)!r}: {exception}",
                title="config unreadable",
                code=FaultCode.CONFIG_LOAD,
                hint="config files hold 'key: value' pairs",
                path=os.fspath(path),
                exception=exception,
            ) from exception
        self._values.update(values)
        logger.debug("loaded %d config values from %s", len(values), path)

    def save(self, path, /):
        """
        Write every value to path as YAML, atomically.
        A failed write removes its temporary file and leaves path untouched.

        Raises
        - ConfigSaveError when the directory or file cannot be written.
        """
        temporary = f"{os.fspath(path)}.tmp"
        try:
            if directory := os.path.dirname(os.fspath(path)):
                os.makedirs(directory, exist_ok=True)
            with open(temporary, "w", encoding="utf-8") as file:
                yaml.safe_dump(self._values, file, default_flow_style=False, sort_keys=True, allow_unicode=True)
            os.replace(temporary, path)
        except OSError as exception:
            with contextlib.suppress(OSError):
                os.remove(temporary)
            raise ConfigSaveError(
                f"failed to save config {os.fspath(path)!r}: {exception}",
                title="config unwritable",
                code=FaultCode.CONFIG_SAVE,
                hint="check the permissions of the config directory",
                path=os.fspath(path),
                exception=exception,
            ) from exception
        logger.debug("saved %d config values to %s", len(self._values), path)


__all__ = (
    "ConfigStore",
    "ConfigSchema",
    "ConfigManager",
)
