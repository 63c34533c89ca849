"""
Tiller application layer: resolve an argument vector into an executed command.

What this module provides
- App: owns the command tree, the config store, the prompter and the I/O
  streams, and runs the resolution pipeline (App.run) or the same pipeline
  with fault reporting and exit codes (App.main).
- Context: what lifecycle hooks receive. It carries the matched command, its
  positional arguments and the flag values of the pass, and answers typed
  lookups with the full precedence chain.
- Extension: protocol for objects that contribute commands or flags to an App.

Pipeline (App.run)
 1. Prepare the tree, apply extensions and load the config file (each once).
 2. Merge root flags from environment, config and defaults (values a flag
    rejects are skipped), then parse the argument vector against them
    (unknown flags pass through).
 3. --version prints "<name> version <version>"; root --help prints the help
    of the command the remaining tokens route to.
 4. Match the command; an unknown token under a routing group raises
    UnknownCommandError.
 5. Merge the command's flags, parse its tokens, map leftovers onto positional
    flags. Whatever is left are the command's arguments.
 6. Command --help prints help; a routing group without a run hook prints help.
 7. Missing required flags: an error when any flag came from the command
    line, otherwise each one is prompted for.
 8. Missing required arguments are prompted for in declared order, stopping at
    the first optional argument.
 9. pre_run, run, post_run are called with the Context; the first exception
    stops the chain and propagates unchanged.

Lookup precedence (Context getters)
- command line (command flags) > command line (root flags) > environment >
  config > defaults.
"""
import copy
import logging
import os
import shlex
import sys
from collections import deque
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from rich.console import Console

from .arguments import split_named
from .commands import Command
from .config import ConfigManager
from .faults import *
from .flags import Binding, Source
from .help import HelpRenderer
from .kinds import Kind
from .prompts import DEFAULT_THEME, PromptRequest, TextPrompter
from .utils import Unset, coalesce, envname

logger = logging.getLogger(__name__)

FORMATS = ("json", "yaml", "text")


@runtime_checkable
class Extension(Protocol):
    def extend(self, app, /) -> None: ...


class Context:
    """
    Execution context handed to pre_run, run and post_run.

    Attributes
    - app: the running App.
    - command: the matched Command.
    - args: positional argument values, declared arguments first, extras after.
      Declared argument i is always args[i]; an empty optional slot before a
      filled one reads as "".
    - values / root_values: flag Values of the command and of the root.
    - cancel: the cancellation event given to App.run (or None).
    """

    def __init__(self, app, command, args, named, values, root_values, cancel=None):
        self._app = app
        self._command = command
        self._args = list(args)
        self._named = dict(named)
        self._values = values
        self._root_values = root_values
        self._cancel = cancel

    @property
    def app(self):
        return self._app

    @property
    def command(self):
        return self._command

    @property
    def args(self):
        return list(self._args)

    @property
    def values(self):
        return self._values

    @property
    def root_values(self):
        return self._root_values

    @property
    def cancel(self):
        return self._cancel

    def arg(self, index, default="", /):
        """
        Return the positional argument at index, else default.
        """
        try:
            return self._args[index]
        except IndexError:
            return default

    def arg_named(self, name, default=None, /):
        """
        Return the value of the declared argument called name, else default.
        """
        return self._named.get(name, default)

    def _scopes(self):
        return (self._values,) if self._values is self._root_values else (self._values, self._root_values)

    def lookup(self, name, /):
        """
        Resolve flag or config key name through the precedence chain.

        Returns
        - (raw string, Source), or ("", None) when no source knows the name.
        """
        scopes = self._scopes()
        for values in scopes:
            binding = values.binding(name)
            if binding is not None and binding.source >= Source.COMMAND_LINE:
                return binding.raw, binding.source

        flags = [flag for values in scopes if (flag := values.flagset.lookup(name)) is not None]
        environ = self._app.environ
        for variable in (*(x for flag in flags for x in (flag.env, *flag.env_aliases)), envname(self._app.env_prefix, name)):
            if variable and variable in environ:
                return environ[variable], Source.ENVIRONMENT

        if self._app.config is not None:
            value, found = self._app.config.get(name)
            if found:
                return value, Source.CONFIG

        for flag in flags:
            if flag.default:
                return flag.default, Source.DEFAULT
        return "", None

    def _typed(self, name, kind, default):
        raw, source = self.lookup(name)
        if source is None:
            return default
        try:
            return kind.coerce(raw)
        except ValueError:
            return default

    def string(self, name, default="", /):
        return self._typed(name, Kind.STRING, default)

    def bool(self, name, default=False, /):
        """
        Read a boolean. A flag given on the command line always reads True,
        whatever literal followed "=" (the literal itself must still parse).
        """
        raw, source = self.lookup(name)
        if source is Source.COMMAND_LINE:
            return True
        return self._typed(name, Kind.BOOL, default)

    def int(self, name, default=0, /):
        return self._typed(name, Kind.INT, default)

    def int64(self, name, default=0, /):
        return self._typed(name, Kind.INT64, default)

    def float(self, name, default=0.0, /):
        return self._typed(name, Kind.FLOAT64, default)

    def duration(self, name, default=Unset, /):
        return self._typed(name, Kind.DURATION, coalesce(default, Kind.DURATION.zero))

    def output_format(self):
        """
        The selected --format, lowercased; unknown values fall back to "text".
        """
        return format if (format := self.string("format").lower()) in FORMATS else "text"

    def prompt(self, request, /):
        """
        Ask a question through the application's prompter, honoring cancellation.
        """
        return self._app.prompter.prompt(request, cancel=self._cancel)

    def __repr__(self):
        return f"context(command={self._command.path!r}, args={self._args!r})"


class App:
    """
    A command-line application: a command tree plus the services resolving it.

    Parameters
    - name: program name; also the default root command name and env prefix source.
    - root: root Command (a bare one named after the app when Unset).
    - version: enables --version/-v when non-empty.
    - description: short description of a generated root.
    - config: ConfigStore (a ConfigManager when Unset, no config when None).
    - config_path: file the config is loaded from (config_file() when Unset).
    - prompter: Prompter (a TextPrompter over stdin/stdout when Unset).
    - stdin / stdout / stderr: streams (the process streams when Unset).
    - env_prefix: prefix of derived env variables (upper-snake name when Unset).
    - theme: PromptTheme used for backfill prompts.
    - environ: mapping consulted for environment values (os.environ when Unset).
    - extensions: Extension objects applied before the first run.
    """

    def __init__(
            self,
            name,
            /,
            root=Unset,
            *,
            version="",
            description="",
            config=Unset,
            config_path=Unset,
            prompter=Unset,
            stdin=Unset,
            stdout=Unset,
            stderr=Unset,
            env_prefix=Unset,
            theme=Unset,
            environ=Unset,
            extensions=(),
    ):
        if not isinstance(name, str):
            raise TypeError("app 'name' must be a string")
        if not (name := name.strip()):
            raise ValueError("app 'name' cannot be empty")
        self._name = name

        if not isinstance(root, Command | Unset):
            raise TypeError("app 'root' must be a command")
        self._root = coalesce(root, Command(name, short=description or Unset))
        self._version = version
        self._description = description

        self._config = ConfigManager(name) if config is Unset else config
        self._config_path = config_path
        self._config_loaded = False
        self._config_error = None

        self._prompter = prompter
        self._stdin = stdin
        self._stdout = stdout
        self._stderr = stderr
        self._env_prefix = coalesce(env_prefix, name.replace("-", "_").upper())
        self._theme = coalesce(theme, DEFAULT_THEME)
        self._environ = environ

        self._extensions = list(extensions)
        self._extended = False
        self._prepared = False

        flags = self._root.flags
        if flags.lookup("format") is None:
            flags.add_string(
                "format",
                short=Unset if "-f" in flags else "f",
                default="text",
                usage="Output format (json, yaml, text)",
            )
        if version:
            self._add_version_flag()

    def _add_version_flag(self):
        flags = self._root.flags
        if flags.lookup("version") is None:
            flags.add_bool("version", short=Unset if "-v" in flags else "v", usage="Show version information")

    @property
    def name(self):
        return self._name

    @property
    def root(self):
        return self._root

    @property
    def version(self):
        return self._version

    @version.setter
    def version(self, version):
        self._version = version
        if version:
            self._add_version_flag()

    @property
    def description(self):
        return self._description

    @property
    def config(self):
        return self._config

    @property
    def env_prefix(self):
        return self._env_prefix

    @property
    def theme(self):
        return self._theme

    @property
    def environ(self):
        return os.environ if self._environ is Unset else self._environ

    @property
    def stdin(self):
        return coalesce(self._stdin, sys.stdin)

    @property
    def stdout(self):
        return coalesce(self._stdout, sys.stdout)

    @property
    def stderr(self):
        return coalesce(self._stderr, sys.stderr)

    @property
    def prompter(self):
        if self._prompter is Unset:
            self._prompter = TextPrompter(self.stdin, self.stdout)
        return self._prompter

    @property
    def flags(self):
        """
        The root command's FlagSet (the application-wide flags).
        """
        return self._root.flags

    def config_dir(self):
        """
        $XDG_CONFIG_HOME/<name> when set, otherwise ~/.config/<name>.
        """
        if base := self.environ.get("XDG_CONFIG_HOME"):
            return os.path.join(base, self._name)
        return os.path.join(os.path.expanduser("~"), ".config", self._name)

    def config_file(self):
        return coalesce(self._config_path, os.path.join(self.config_dir(), "config.yaml"))

    def save_config(self):
        """
        Persist the config store to config_file().
        """
        if self._config is not None:
            self._config.save(self.config_file())

    def add_extension(self, extension, /):
        if not callable(getattr(extension, "extend", None)):
            raise TypeError("add_extension() argument must implement extend()")
        self._extensions.append(extension)
        self._extended = False
        return extension

    def apply_extensions(self):
        """
        Apply every pending extension once.
        """
        if self._extended:
            return
        while self._extensions:
            extension = self._extensions.pop(0)
            extension.extend(self)
            logger.debug("applied extension %s", type(extension).__name__)
        self._extended = True

    def prepare(self):
        """
        Prepare the command tree and apply extensions; idempotent.
        """
        self.apply_extensions()
        self._root.prepare()
        self._prepared = True
        return self

    def _load_config(self):
        if not self._config_loaded:
            self._config_loaded = True
            if self._config is not None:
                try:
                    self._config.load(self.config_file())
                except ConfigError as exception:
                    self._config_error = exception
        if self._config_error is not None:
            raise self._config_error

    def render_help(self, command, out=Unset, /):
        HelpRenderer(env_prefix=self._env_prefix).render(command, coalesce(out, self.stdout))

    def _tokens(self, argv):
        if argv is Unset:
            return sys.argv[1:]
        if isinstance(argv, str):
            return shlex.split(argv)
        if isinstance(argv, Iterable):
            tokens = list(argv)
            if not all(isinstance(token, str) for token in tokens):
                raise TypeError("run() argument must be a string or an iterable of strings")
            return tokens
        raise TypeError("run() argument must be a string or an iterable of strings")

    def run(self, argv=Unset, /, *, cancel=None):
        """
        Resolve argv and execute the matched command.

        Parameters
        - argv: Unset (sys.argv[1:]), a shell-like string (split with shlex) or an
          iterable of tokens.
        - cancel: optional threading.Event; a set event aborts pending prompts.

        Returns
        - The Context the hooks ran with, or None when help or the version was shown.

        Raises
        - Any TillerError from resolution; exceptions from hooks unchanged.
        """
        tokens = self._tokens(argv)
        self.prepare()
        self._load_config()

        root = self._root
        root_values = root.flags.values().merge(self._env_prefix, self._config, self.environ)
        remaining = root.flags.parse(tokens, root_values, strict=False)

        if self._version and root_values.is_cli_set("version") and root_values["version"]:
            self.stdout.write(f"{self._name} version {self._version}\n")
            return None

        if root_values.is_cli_set("help") and root_values["help"]:
            command, _ = root.match(remaining)
            self.render_help(command)
            return None

        command, rest = root.match(remaining)
        logger.debug("matched %r with remaining %r", command.path, rest)

        if rest and command.run is None and command.children and not rest[0].startswith("-"):
            consumed = len(remaining) - len(rest)
            raise UnknownCommandError(
                f"unknown command: {command.path} {rest[0]}",
                title="unknown command",
                code=FaultCode.UNKNOWN_COMMAND,
                hint=f"run '{command.path} --help' to list the available commands",
                command=command,
                token=rest[0],
                tokens=tuple(remaining),
                fallback=command if consumed >= 1 and len(rest) == 1 else None,
            )

        if command is root:
            values = root_values
        else:
            values = command.flags.values().merge(self._env_prefix, self._config, self.environ)
        rest = command.flags.parse(rest, values)
        excess = command.flags.map_positionals(rest, values)

        if values.is_cli_set("help") and values["help"]:
            self.render_help(command)
            return None

        if command.run is None and command.user_children():
            self.render_help(command)
            return None

        if command.run is None:
            raise NoRunHandlerError(
                f"command {command.path} has no run handler",
                title="nothing to run",
                code=FaultCode.NO_RUN_HANDLER,
                hint="did you intend this to be a group? add a run hook or children",
                command=command,
            )

        if missing := values.missing_required():
            if values.any_cli_set():
                raise MissingRequiredFlagsError(
                    f"missing required flags: {", ".join(f"--{flag.name}" for flag in missing)}",
                    title="missing flags",
                    code=FaultCode.MISSING_REQUIRED_FLAGS,
                    hint=f"run '{command.path} --help' to see which flags are required",
                    flags=tuple(flag.name for flag in missing),
                    command=command,
                )
            for flag in missing:
                self._prompt_flag(flag, values, cancel)

        args, named = self._backfill(command, excess, cancel)

        context = Context(self, command, args, named, values, root_values, cancel)
        for hook in (command.pre_run, command.run, command.post_run):
            if hook is not None:
                logger.debug("calling %s of %s", getattr(hook, "__name__", "hook"), command.path)
                hook(context)
        return context

    def _prompt_flag(self, flag, values, cancel):
        def validate(raw):
            try:
                flag.coerce(raw)
            except (InvalidValueError, ValidationError) as exception:
                raise ValueError(exception.message) from exception

        raw = self.prompter.prompt(PromptRequest(flag.label, validate=validate, theme=self._theme), cancel=cancel)
        values.bind(flag, raw, Source.PROMPT)

    def _backfill(self, command, excess, cancel):
        """
        internal helper: fill the declared arguments of command from excess tokens.

        intent
        - named "key=value" tokens fill their argument first, plain tokens fill
          the rest in declared order, then missing required arguments are
          prompted for until the first optional one.

        returns
        - (args, named): args[i] is declared argument i ("" for an unfilled gap
          before a filled one) followed by the leftover tokens; named maps the
          filled argument names to their values.
        """
        named, positionals = split_named(excess, command.arguments)
        queue = deque(positionals)
        slots = {}
        for argument in command.arguments:
            if argument.name in named:
                slots[argument.name] = named[argument.name]
            elif queue:
                slots[argument.name] = queue.popleft()

        for argument in command.arguments:
            if argument.name in slots:
                continue
            if not argument.required:
                break
            logger.debug("prompting for argument %s of %s", argument.name, command.path)
            slots[argument.name] = self.prompter.prompt(
                PromptRequest(argument.label, argument.default, argument.validate, theme=self._theme),
                cancel=cancel,
            )

        filled = [index for index, argument in enumerate(command.arguments) if argument.name in slots]
        declared = command.arguments[:filled[-1] + 1] if filled else ()
        args = [slots.get(argument.name, "") for argument in declared]
        return args + list(queue), slots

    def main(self, argv=Unset, /, *, cancel=None):
        """
        Run and report: faults are printed to stderr and turned into exit codes.

        Returns
        - 0 on success, 1 on a fault, 130 when interrupted.
        """
        console = Console(file=self.stderr, highlight=False)
        try:
            self.run(argv, cancel=cancel)
        except PromptAbortedError as fault:
            console.print(copy.replace(fault, prog=self._name))
            return 130
        except KeyboardInterrupt:
            return 130
        except TillerError as fault:
            console.print(copy.replace(fault, prog=self._name))
            if fallback := fault.options.get("fallback"):
                self.render_help(fallback)
            return 1
        return 0


__all__ = (
    "App",
    "Context",
    "Extension",
    "FORMATS",
)
