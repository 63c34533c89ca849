"""
Tiller faults and rendering.

Contents
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
  Codes are grouped by domain to keep copy consistent and logs searchable.
- TillerError: base exception carrying a message plus read-only options
  (title, code, hint and context such as the flag, token or command involved),
  able to render itself through rich.
- Intermediate bases per domain (FlagError, CommandError, PromptError,
  ConfigError) so callers can catch a whole family at once.

Wording
- Soft but technical language: short titles, one-sentence lowercased bodies,
  a single clear hint.
- Styling configurable via __styles__ in __main__; code labels via __codes__.

Reporting
- The resolution pipeline always raises. App.main() is the single place that
  prints faults (to stderr) and turns them into an exit code.
"""
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset


class FaultCode(IntEnum):
    """
    Stable numeric identifiers of every fault, grouped by domain.
    - flags (111xx)
      • DUPLICATE_FLAG, UNKNOWN_FLAG, MISSING_VALUE, INVALID_VALUE,
        VALIDATION_FAILED, MISSING_REQUIRED_FLAGS
    - commands (112xx)
      • UNKNOWN_COMMAND, NO_RUN_HANDLER
    - prompts (113xx)
      • PROMPT_IO, PROMPT_ABORTED, PROMPT_UNSUPPORTED
    - config (114xx)
      • CONFIG_LOAD, CONFIG_SAVE, CONFIG_KEY
    """
    # --- flag errors (111xx) ---
    DUPLICATE_FLAG          = 11101
    UNKNOWN_FLAG            = 11102
    MISSING_VALUE           = 11103
    INVALID_VALUE           = 11104
    VALIDATION_FAILED       = 11105
    MISSING_REQUIRED_FLAGS  = 11106

    # --- command errors (112xx) ---
    UNKNOWN_COMMAND         = 11201
    NO_RUN_HANDLER          = 11202

    # --- prompt errors (113xx) ---
    PROMPT_IO               = 11301
    PROMPT_ABORTED          = 11302
    PROMPT_UNSUPPORTED      = 11303

    # --- config errors (114xx) ---
    CONFIG_LOAD             = 11401
    CONFIG_SAVE             = 11402
    CONFIG_KEY              = 11403

    def normalize(self):
        """
        return a host-normalized string for this code.

        A __codes__ mapping defined in __main__ may relabel any code.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


class TillerError(Exception):
    """
    Base class of every fault raised while resolving an invocation.

    Parameters
    - message: str, the one-sentence lowercased body (also the str() of the error).
    - options: keyword context exposed read-only through .options; the renderer
      reads "title", "code", "hint" and "prog", everything else is context
      for callers (e.g. "flag", "token", "command", "exception").
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        super().__init__(*(() if message is Unset else (message,)))
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return "" if self.message is Unset else self.message

    @property
    def code(self):
        return self.options.get("code")

    def __rich__(self):
        palette = defaultdict(str, {
            "prog-name": "bold white",
            "code": "bold cyan",
            "error-title": "bold magenta",
            "error-message": "grey78",
            "hint-arrow": "dim green",
            "hint": "italic green",
        } | getattr(__import__("__main__"), "__styles__", {}))
        plain = not self.options.get("colorful", True)

        def styled(fragment, key):
            return Text(str(fragment) if fragment else "", "" if plain else palette[key])

        code = self.options.get("code")
        header = Text.assemble(
            "[ ",
            styled(getattr(__import__("__main__"), "__prog__", self.options.get("prog", "tiller")), "prog-name"),
            " — ",
            styled(code.normalize() if code else "error", "code"),
            " | ",
            styled(self.options.get("title", type(self).__name__).title(), "error-title"),
            " ]",
        )
        body = [styled(self, "error-message")]
        if hint := self.options.get("hint"):
            body.append(Text.assemble(styled(" → ", "hint-arrow"), styled(hint, "hint")))

        if self.options.get("fancy", False):
            return Panel(Group(*body), title=header, title_align="left")
        return Group(header, *body)

    def __replace__(self, /, **overrides):
        replaced = type(self)(self.message, **{**self.options, **overrides})
        replaced.__cause__ = self.__cause__
        return replaced


class FlagError(TillerError): ...
class DuplicateFlagError(FlagError): ...
class UnknownFlagError(FlagError): ...
class MissingValueError(FlagError): ...
class InvalidValueError(FlagError): ...
class ValidationError(FlagError): ...
class MissingRequiredFlagsError(FlagError): ...

class CommandError(TillerError): ...
class UnknownCommandError(CommandError): ...
class NoRunHandlerError(CommandError): ...

class PromptError(TillerError): ...
class PromptIOError(PromptError): ...
class PromptAbortedError(PromptError): ...
class PromptUnsupportedError(PromptError): ...

class ConfigError(TillerError): ...
class ConfigLoadError(ConfigError): ...
class ConfigSaveError(ConfigError): ...
class ConfigKeyError(ConfigError): ...


__all__ = (
    "FaultCode",
    "TillerError",
    "FlagError",
    "DuplicateFlagError",
    "UnknownFlagError",
    "MissingValueError",
    "InvalidValueError",
    "ValidationError",
    "MissingRequiredFlagsError",
    "CommandError",
    "UnknownCommandError",
    "NoRunHandlerError",
    "PromptError",
    "PromptIOError",
    "PromptAbortedError",
    "PromptUnsupportedError",
    "ConfigError",
    "ConfigLoadError",
    "ConfigSaveError",
    "ConfigKeyError",
)
