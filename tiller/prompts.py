"""
Tiller interactive prompts.

Contract
- A Prompter turns a PromptRequest into one accepted string, or raises.
- TextPrompter is the line-based baseline: it renders the prompt, reads one
  line, trims it and validates it, re-rendering until the validator accepts.
  It refuses confirm requests (PromptUnsupportedError) instead of degrading
  them to free text.
- TerminalPrompter adds yes/no confirm prompts on top of the same protocol.

Rendering (per attempt)
    prefix + label [+ " [default]"] [+ " " + hint] + ": "
and on a rejected value
    error + message + "\\n"

Themes only decorate: every *_style field is an optional callable applied to
the corresponding fragment, so the resolution logic never depends on them.

Failures
- PromptIOError: no streams were configured, or the input was closed.
- PromptAbortedError: the cancel event was set or the user interrupted.
"""
import logging
from typing import NamedTuple, Protocol, runtime_checkable

from .faults import *
from .utils import Unset, coalesce

logger = logging.getLogger(__name__)


class PromptTheme(NamedTuple):
    """
    Markers and optional style callables used to render prompts.
    """
    prefix: str = "? "
    hint: str = ""
    error: str = "! "
    prefix_style: object = None
    label_style: object = None
    hint_style: object = None
    default_style: object = None
    error_style: object = None


DEFAULT_THEME = PromptTheme()


class PromptRequest(NamedTuple):
    """
    One question to ask.

    - label: text shown after the theme prefix.
    - default: returned on empty input (without validation); "" means none.
      For confirm requests "n", "N" or "no" make No the default.
    - validate: callable(value) raising ValueError with the message to show.
    - confirm: ask a yes/no question; the answer is "y" or "n".
    - theme: PromptTheme, DEFAULT_THEME when None.
    """
    label: str
    default: str = ""
    validate: object = None
    confirm: bool = False
    theme: object = None


@runtime_checkable
class Prompter(Protocol):
    def prompt(self, request, /, *, cancel=None) -> str: ...


def _styled(style, text):
    return style(text) if style is not None and text else text


class TextPrompter:
    """
    Line-based prompter over a pair of text streams.

    Parameters
    - stdin: readable text stream (readline()).
    - stdout: writable text stream (write()/flush()).
    """

    def __init__(self, stdin=Unset, stdout=Unset):
        self._stdin = coalesce(stdin)
        self._stdout = coalesce(stdout)

    @property
    def stdin(self):
        return self._stdin

    @property
    def stdout(self):
        return self._stdout

    def prompt(self, request, /, *, cancel=None):
        """
        Ask request and return the accepted answer.

        Raises
        - PromptIOError, PromptAbortedError, PromptUnsupportedError (confirm requests).
        """
        if self._stdin is None or self._stdout is None:
            raise PromptIOError(
                "prompter missing io",
                title="prompt unavailable",
                code=FaultCode.PROMPT_IO,
                hint="configure both an input and an output stream",
            )
        if request.confirm:
            return self._confirm(request, cancel)
        return self._text(request, cancel)

    def _confirm(self, request, cancel):
        raise PromptUnsupportedError(
            "confirm prompts require the prompt extension",
            title="prompt unsupported",
            code=FaultCode.PROMPT_UNSUPPORTED,
            hint="use TerminalPrompter for yes/no questions",
            label=request.label,
        )

    def _text(self, request, cancel):
        theme = request.theme or DEFAULT_THEME
        while True:
            suffix = ""
            if request.default:
                suffix += f" [{_styled(theme.default_style, request.default)}]"
            if theme.hint:
                suffix += f" {_styled(theme.hint_style, theme.hint)}"
            value = self._ask(request, theme, suffix, cancel)

            if not value and request.default:
                return request.default
            if request.validate is None:
                return value
            try:
                request.validate(value)
            except ValueError as exception:
                logger.debug("prompt %r rejected %r: %s", request.label, value, exception)
                self._reject(theme, str(exception))
                continue
            return value

    def _ask(self, request, theme, suffix, cancel):
        """
        Render one prompt line and read the trimmed answer.
        """
        if cancel is not None and cancel.is_set():
            raise PromptAbortedError(
                "prompt cancelled",
                title="prompt aborted",
                code=FaultCode.PROMPT_ABORTED,
                hint="the invocation was cancelled while waiting for input",
                label=request.label,
            )
        self._stdout.write(
            f"{_styled(theme.prefix_style, theme.prefix)}{_styled(theme.label_style, request.label)}{suffix}: "
        )
        self._stdout.flush()
        try:
            line = self._stdin.readline()
        except KeyboardInterrupt:
            raise PromptAbortedError(
                "prompt interrupted",
                title="prompt aborted",
                code=FaultCode.PROMPT_ABORTED,
                hint="the invocation was interrupted while waiting for input",
                label=request.label,
            ) from None
        except OSError as exception:
            raise PromptIOError(
                f"failed to read input: {exception}",
                title="prompt failed",
                code=FaultCode.PROMPT_IO,
                hint="check that the input stream is readable",
                label=request.label,
                exception=exception,
            ) from exception
        if not line:
            raise PromptIOError(
                "input closed before an answer was given",
                title="prompt failed",
                code=FaultCode.PROMPT_IO,
                hint="provide the value on the command line when input is not interactive",
                label=request.label,
            )
        return line.strip()

    def _reject(self, theme, message):
        self._stdout.write(f"{_styled(theme.error_style, theme.error)}{_styled(theme.error_style, message)}\n")


class TerminalPrompter(TextPrompter):
    """
    Prompter that also answers confirm requests with "y" or "n".
    """

    def _confirm(self, request, cancel):
        theme = request.theme or DEFAULT_THEME
        yes = request.default.lower() not in ("n", "no")
        while True:
            value = self._ask(request, theme, " (Y/n)" if yes else " (y/N)", cancel).lower()
            if not value:
                return "y" if yes else "n"
            if value in ("y", "yes"):
                return "y"
            if value in ("n", "no"):
                return "n"
            self._reject(theme, "please enter 'y' or 'n'")


__all__ = (
    "PromptTheme",
    "PromptRequest",
    "DEFAULT_THEME",
    "Prompter",
    "TextPrompter",
    "TerminalPrompter",
)
