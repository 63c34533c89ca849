"""
Tiller help rendering (rich-based).

HelpRenderer.render(command, out) prints the help page of one node:
description, usage, arguments, child groups and commands, the node's flags,
the root's global flags (for non-root nodes) and examples.

Palette keys
- heading, program-name, description, name, metavar, required, muted, example

Customization
- Define a mapping named __styles__ in __main__ to override any palette entry.
- Colors only reach terminals; writing to files or buffers yields plain text.
"""
from collections import defaultdict

from rich.console import Console, Group
from rich.table import Table
from rich.text import Text

from .kinds import Kind
from .utils import Unset, coalesce, envname


class HelpRenderer:
    """
    Render help pages for the nodes of an application's command tree.

    Parameters
    - env_prefix: prefix used to show derived environment variable names.
    - width: console width (rich picks one when Unset).
    """

    def __init__(self, *, env_prefix="", width=Unset):
        self._env_prefix = env_prefix
        self._width = coalesce(width)

    def render(self, command, out, /):
        styles = defaultdict(str, {
            "heading": "bold #FFFFFF",
            "program-name": "bold #FF4D94",
            "description": "italic #A3A3A3",
            "name": "bold #00E6FF",
            "metavar": "bold #FFD600",
            "required": "bold #EF4444",
            "muted": "#9CA3AF",
            "example": "#E5E7EB",
        } | getattr(__import__("__main__"), "__styles__", {}))

        def section(title, *renderables):
            return Group(Text(title, styles["heading"]), *renderables, Text(""))

        def grid():
            table = Table.grid(padding=(0, 2))
            table.add_column(no_wrap=True)
            table.add_column()
            return table

        renders = []

        if description := command.long or command.short:
            renders.extend((Text(description, styles["description"]), Text("")))

        usage = Text("  ")
        if command.usage:
            usage.append(command.usage)
        else:
            usage.append(command.path, styles["program-name"])
            if command.children:
                usage.append(" <command>", styles["metavar"])
            usage.append(" [flags]", styles["muted"])
            for argument in command.arguments:
                usage.append(f" <{argument.name}>" if argument.required else f" [{argument.name}]", styles["metavar"])
        renders.append(section("USAGE", usage))

        if command.arguments:
            table = grid()
            for argument in command.arguments:
                help = Text(argument.usage, styles["muted"])
                if argument.required:
                    help.append(" (required)" if argument.usage else "(required)", styles["required"])
                table.add_row(Text(f"  {argument.name}", styles["metavar"]), help)
            renders.append(section("ARGUMENTS", table))

        for title, children in (("GROUPS", command.groups()), ("COMMANDS", command.commands())):
            if children:
                table = grid()
                for child in children:
                    name = ", ".join((child.name, *child.aliases))
                    table.add_row(Text(f"  {name}", styles["name"]), Text(child.short, styles["muted"]))
                renders.append(section(title, table))

        if table := self._flags(command.flags, styles, grid):
            renders.append(section("FLAGS", table))

        root = command.root
        if root is not command and (table := self._flags(root.flags, styles, grid, exclude=("help",))):
            renders.append(section("GLOBAL FLAGS", table))

        if command.example:
            renders.append(section("EXAMPLES", Text.assemble(
                *(Text(f"  {line}\n", styles["example"]) for line in command.example.strip("\n").splitlines())
            )))

        console = Console(file=out, width=self._width, highlight=False)
        console.print(Group(*renders))

    def _flags(self, flags, styles, grid, exclude=()):
        visible = [flag for flag in flags if not flag.hidden and flag.name not in exclude]
        if not visible:
            return None
        table = grid()
        for flag in visible:
            name = Text("  ")
            name.append(f"-{flag.short}, " if flag.short else "    ", styles["name"])
            name.append(f"--{flag.name}", styles["name"])
            if flag.kind is not Kind.BOOL:
                name.append(f" <{flag.kind.value}>", styles["metavar"])

            help = Text(flag.usage)
            notes = []
            if flag.default:
                notes.append(f"default: {flag.default}")
            if flag.env or self._env_prefix:
                notes.append(f"env: {flag.env or envname(self._env_prefix, flag.name)}")
            if notes:
                help.append(f"{" " if flag.usage else ""}({", ".join(notes)})", styles["muted"])
            if flag.required:
                help.append(" (required)", styles["required"])
            table.add_row(name, help)
        return table


__all__ = (
    "HelpRenderer",
)
