"""
Tiller argument specifications.

An Argument describes one positional parameter of a command: the values left
over once flags and positional flags have been resolved fill the declared
arguments in order. Required arguments nobody supplied are backfilled
interactively by the application (see App.run), one prompt per argument in
declared order.

Named form
- A leftover token "key=value" whose key names a declared argument fills that
  argument by name instead of by position; hyphens and underscores in the key
  are interchangeable ("project_id=1" fills "project-id").
"""
from .utils import SpecType, Unset, coalesce, labelize


class Argument(metaclass=SpecType):
    """
    Positional parameter of a command.

    Parameters
    - name: identifier used by Context.arg_named() and the named "key=value" form.
    - required: the argument is prompted for when missing.
    - default: value offered (and returned on empty input) when prompting.
    - validate: callable(raw) raising ValueError with a user-facing message.
    - prompt: explicit prompt label.
    - usage: help text.

    Notes
    - Backfill stops at the first optional argument, so required arguments
      are expected to form a leading run of the declared list.
    """

    __introspectable__ = (
        "name",
        "required",
        "default",
        "validate",
        "prompt",
        "usage",
    )

    __displayable__ = (
        "name",
        "required",
        "default",
    )

    def __init__(self, name, /, *, required=False, default=Unset, validate=Unset, prompt=Unset, usage=Unset):
        cls = type(self)
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} 'name' must be a string")
        if not (name := name.strip()):
            raise ValueError(f"{cls.__typename__} 'name' cannot be empty")
        if "=" in name:
            raise ValueError(f"{cls.__typename__} 'name' cannot contain '='")
        self._name = name
        self._required = bool(required)

        for field, text in (("default", default), ("prompt", prompt), ("usage", usage)):
            if not isinstance(text, str | Unset):
                raise TypeError(f"{cls.__typename__} {field!r} must be a string")
        self._default = coalesce(default, "")
        self._prompt = coalesce(prompt, "")
        self._usage = coalesce(usage, "")

        if validate is not Unset and not callable(validate):
            raise TypeError(f"{cls.__typename__} 'validate' must be callable")
        self._validate = coalesce(validate)

    @property
    def label(self):
        """
        Prompt label: the explicit prompt, else the title-cased name, else "Value".
        """
        return self._prompt or labelize(self._name) or "Value"

    @property
    def key(self):
        """
        Normalized name used to recognize the named "key=value" form.
        """
        return self._name.replace("-", "_")


def split_named(tokens, arguments, /):
    """
    Separate "key=value" tokens naming a declared argument from plain positionals.

    Returns
    - (named, positionals): a dict of argument name -> value, and the list of
      remaining tokens in their original order. Tokens with an unknown key, or
      starting with "-", stay positional.
    """
    keys = {argument.key: argument for argument in arguments}
    named = {}
    positionals = []
    for token in tokens:
        key, equals, value = token.partition("=")
        if equals and not key.startswith("-") and (argument := keys.get(key.replace("-", "_"))):
            named[argument.name] = value
            continue
        positionals.append(token)
    return named, positionals


__all__ = (
    "Argument",
)
