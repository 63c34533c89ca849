"""
Optional commands contributed to an App through the Extension protocol.

- HelpExtension: "help [command...]" prints the help of any command.
- VersionExtension: "version" prints name, version, commit and build date, and
  enables the --version/-v root flag.
- ConfigExtension: the "config" group managing the persisted config store
  (list, get, set, unset, reset).

Extension commands are flagged extension=True: they never turn their parent
into a routing group, so an application whose only children come from
extensions still runs its root command.

Usage
    app = App("demo", extensions=[HelpExtension(), ConfigExtension()])
"""
import yaml

from .arguments import Argument
from .commands import Command
from .faults import *


class HelpExtension:
    """
    Add "help [command...]" to the root.
    """

    def extend(self, app, /):
        if app.root.find_child("help") is not None:
            return

        def run(context):
            target = app.root.resolve_path(context.args)
            if target is None:
                raise UnknownCommandError(
                    f"unknown command: {" ".join(context.args)}",
                    title="unknown command",
                    code=FaultCode.UNKNOWN_COMMAND,
                    hint=f"run '{app.root.path} help' to list the available commands",
                    tokens=tuple(context.args),
                )
            app.render_help(target)

        app.root.add(Command(
            "help",
            short="Show help for a command",
            usage=f"{app.root.name} help [command...]",
            arguments=[Argument("command", usage="Command path to describe")],
            extension=True,
            run=run,
        ))


class VersionExtension:
    """
    Add the "version" command and the --version flag.

    Parameters
    - version: semantic version ("dev" when empty).
    - commit / date: optional build metadata shown by the command.
    """

    def __init__(self, version="", commit="", date=""):
        self.version = version
        self.commit = commit
        self.date = date

    def extend(self, app, /):
        app.version = self.version or app.version or "dev"
        if app.root.find_child("version") is not None:
            return

        def run(context):
            out = context.app.stdout
            out.write(f"{app.name} version {app.version}\n")
            if self.commit:
                out.write(f"commit: {self.commit}\n")
            if self.date:
                out.write(f"built: {self.date}\n")

        app.root.add(Command(
            "version",
            short="Show version information",
            usage=f"{app.root.name} version",
            extension=True,
            run=run,
        ))


class ConfigExtension:
    """
    Add the "config" group operating on the persisted config store.

    Subcommands
    - config list: print every stored value as YAML.
    - config get <key>: print one value.
    - config set <key> <value>: normalize (see ConfigManager.normalize), store and save.
    - config unset <key>: remove a value and save.
    - config reset: remove every value and save.
    """

    def extend(self, app, /):
        if app.root.find_child("config") is not None or app.config is None:
            return
        store = app.config

        def list_values(context):
            values = store.values() if hasattr(store, "values") else {}
            if values:
                yaml.safe_dump(values, context.app.stdout, default_flow_style=False, sort_keys=True, allow_unicode=True)

        def get_value(context):
            key = context.arg_named("key")
            value, found = store.get(key)
            if not found:
                raise ConfigKeyError(
                    f"configuration key not found: {key}",
                    title="unknown key",
                    code=FaultCode.CONFIG_KEY,
                    hint=f"run '{app.root.name} config list' to see the stored keys",
                    key=key,
                )
            context.app.stdout.write(f"{value}\n")

        def set_value(context):
            key, value = context.arg_named("key"), context.arg_named("value")
            if hasattr(store, "normalize"):
                try:
                    value = store.normalize(key, value)
                except ValueError as exception:
                    raise ValidationError(
                        str(exception),
                        title="invalid value",
                        code=FaultCode.VALIDATION_FAILED,
                        hint=f"check the value given to {key}",
                        key=key,
                        exception=exception,
                    ) from exception
            store.set(key, value)
            app.save_config()
            context.app.stdout.write(f"{key} = {value}\n")

        def unset_value(context):
            key = context.arg_named("key")
            removed = store.delete(key) if hasattr(store, "delete") else False
            app.save_config()
            context.app.stdout.write(f"{key} removed\n" if removed else f"{key} removed (no value stored)\n")

        def reset_values(context):
            store.reset()
            app.save_config()
            context.app.stdout.write("Configuration cleared\n")

        key = Argument("key", required=True, prompt="Key", usage="Dot-separated key path")
        group = Command("config", short="Manage persisted configuration", extension=True)
        group.add(
            Command("list", short="List persisted configuration values", run=list_values),
            Command("get", short="Print a configuration value", arguments=[key], run=get_value),
            Command(
                "set",
                short="Update a configuration value",
                arguments=[key, Argument("value", required=True, prompt="Value", usage="Value to store")],
                run=set_value,
            ),
            Command("unset", short="Remove a persisted configuration value", arguments=[key], run=unset_value),
            Command("reset", short="Remove all persisted configuration", run=reset_values),
        )
        app.root.add(group)


__all__ = (
    "HelpExtension",
    "VersionExtension",
    "ConfigExtension",
)
