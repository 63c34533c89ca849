"""
Tiller command layer: build and traverse command trees.

What this module provides
- Command: a node of the command tree. It owns a FlagSet, ordered Argument
  specs, child commands and the pre_run/run/post_run lifecycle hooks.
  • A node with no run hook and at least one child is a routing group.
  • A node with a run hook is executable, with or without children.
- command(...): build a Command from a callback, or return a decorator that does.

Matching
- Command.match(tokens) descends from a node while the next token equals a
  child's name or one of its aliases (case-insensitively) and returns the
  deepest node reached plus the unconsumed tokens. There is no backtracking:
  the first token that names no child stops the walk. On a root node a
  leading token equal to the root's own name is discarded first, so both
  "tool sub" and "sub" route the same way.

Preparation
- prepare() walks the tree once before the first run: it wires parent links
  and injects a boolean --help/-h flag on every node that lacks one. It is
  idempotent.

Quick start
    from tiller import command, Argument

    @command(name="demo")
    def root(context): ...

    @root.command(aliases=("hi",), arguments=[Argument("name", required=True)])
    def greet(context):
        \"\"\"Say hello.\"\"\"
        print(f"hello {context.arg(0)}")
"""
import inspect
import logging

from .arguments import Argument
from .flags import FlagSet
from .utils import SpecType, Unset, coalesce, rename

logger = logging.getLogger(__name__)


def _normalize(name, /):
    return name.casefold()


def _sanitize_hook(cls, name, hook, /):
    if hook is not Unset and not callable(hook):
        raise TypeError(f"{cls.__typename__} {name!r} must be callable")
    return coalesce(hook)


class Command(metaclass=SpecType):
    """
    Node of a command tree.

    Parameters
    - name: matched case-insensitively against tokens.
    - aliases: alternative names, matched like the name.
    - short / long / usage / example: help texts (one-liner, paragraph, usage
      override, example block).
    - hidden: omit from help listings (still routable).
    - extension: the node was contributed by an extension; such children do not
      make their parent a routing group.
    - flags: FlagSet of the node (a fresh one named after the node by default).
    - arguments: ordered Argument specs.
    - pre_run / run / post_run: hooks called with the execution Context.
    - parent: attach to this parent on construction.
    - children: nodes to attach on construction.

    Raises
    - TypeError / ValueError on malformed definitions, or when a child's name
      or alias collides with a sibling.
    """

    __introspectable__ = (
        "name",
        "aliases",
        "short",
        "long",
        "usage",
        "example",
        "hidden",
        "extension",
        "flags",
        "arguments",
        "pre_run",
        "run",
        "post_run",
        "parent",
        "children",
    )

    __displayable__ = (
        "name",
        "aliases",
        "short",
        "arguments",
        "children",
    )

    def __init__(
            self,
            name,
            /,
            *,
            aliases=(),
            short=Unset,
            long=Unset,
            usage=Unset,
            example=Unset,
            hidden=False,
            extension=False,
            flags=Unset,
            arguments=(),
            pre_run=Unset,
            run=Unset,
            post_run=Unset,
            parent=Unset,
            children=(),
    ):
        cls = type(self)
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} 'name' must be a string")
        if not (name := name.strip()) or any(character.isspace() for character in name):
            raise ValueError(f"{cls.__typename__} 'name' must be a non-empty word")
        self._name = name

        if isinstance(aliases, str) or not all(isinstance(x, str) and x.strip() for x in aliases):
            raise TypeError(f"{cls.__typename__} 'aliases' must be an iterable of non-empty strings")
        self._aliases = tuple(alias.strip() for alias in aliases)

        for field, text in (("short", short), ("long", long), ("usage", usage), ("example", example)):
            if not isinstance(text, str | Unset):
                raise TypeError(f"{cls.__typename__} {field!r} must be a string")
        self._short = coalesce(short, "")
        self._long = coalesce(long, "")
        self._usage = coalesce(usage, "")
        self._example = coalesce(example, "")
        self._hidden = bool(hidden)
        self._extension = bool(extension)

        if not isinstance(flags, FlagSet | Unset):
            raise TypeError(f"{cls.__typename__} 'flags' must be a flag-set")
        self._flags = coalesce(flags, FlagSet(name))

        if not all(isinstance(argument, Argument) for argument in arguments):
            raise TypeError(f"{cls.__typename__} 'arguments' must be an iterable of arguments")
        self._arguments = tuple(arguments)

        self._pre_run = _sanitize_hook(cls, "pre_run", pre_run)
        self._run = _sanitize_hook(cls, "run", run)
        self._post_run = _sanitize_hook(cls, "post_run", post_run)

        self._parent = None
        self._children = []
        self._index = {}
        self._prepared = False

        for child in children:
            self.add(child)
        if parent is not Unset:
            if not isinstance(parent, Command):
                raise TypeError(f"{cls.__typename__} 'parent' must be a command")
            parent.add(self)

    @property
    def root(self):
        """
        Return the topmost command of the tree this node belongs to.
        """
        child, parent = self, self._parent
        while parent:
            child, parent = parent, parent._parent
        return child

    @property
    def lineage(self):
        """
        Return the ancestry from root to this command as a tuple of nodes.
        """
        lineage = [command := self]
        while command._parent:
            lineage.append(command := command._parent)
        return tuple(reversed(lineage))

    @property
    def path(self):
        """
        Space-joined names from the root to this node (e.g. "tool config set").
        """
        return " ".join(command.name for command in self.lineage)

    @property
    def is_group(self):
        """
        A routing group: children but no run hook.
        """
        return self._run is None and len(self._children) > 0

    @property
    def is_leaf(self):
        """
        An executable node: it has a run hook.
        """
        return self._run is not None

    @property
    def required_arguments(self):
        return sum(1 for argument in self._arguments if argument.required)

    def __bool__(self):
        return True

    def add(self, *children):
        """
        Attach children under this node, in order; returns the last one.

        Raises
        - ValueError when a child's name or alias is already used by a sibling.
        """
        cls = type(self)
        for child in children:
            if not isinstance(child, Command):
                raise TypeError(f"{cls.__typename__} children must be commands")
            if child._parent is not None and child._parent is not self:
                raise ValueError(f"{cls.__typename__} {child.name!r} is already attached to {child._parent.path!r}")
            keys = [_normalize(name) for name in (child.name, *child.aliases)]
            for key in keys:
                if self._index.get(key, child) is not child:
                    typeof = "subcommand" if self._parent else "command"
                    raise ValueError(f"{cls.__typename__} {typeof} name {key!r} is already in use")
            if child._parent is self:
                continue
            child._parent = self
            self._children.append(child)
            for key in keys:
                self._index.setdefault(key, child)
        return children[-1] if children else None

    def command(self, source=Unset, /, **options):
        """
        Create a child command under this node (see command()); usable as a decorator.
        """
        return command(source, parent=self, **options)

    def before(self, hook, /):
        """
        Register the pre_run hook; usable as a decorator. Cannot be overridden.
        """
        if not callable(hook):
            raise TypeError(f"{type(self).__typename__} pre_run must be callable")
        if self._pre_run is not None:
            raise TypeError(f"{type(self).__typename__} pre_run cannot be overridden")
        self._pre_run = hook
        return hook

    def after(self, hook, /):
        """
        Register the post_run hook; usable as a decorator. Cannot be overridden.
        """
        if not callable(hook):
            raise TypeError(f"{type(self).__typename__} post_run must be callable")
        if self._post_run is not None:
            raise TypeError(f"{type(self).__typename__} post_run cannot be overridden")
        self._post_run = hook
        return hook

    def prepare(self):
        """
        Wire parent links and inject the --help/-h flag across the subtree.

        Safe to call repeatedly; nodes added after a previous call are prepared
        on the next one.
        """
        if not self._prepared:
            if self._flags.lookup("help") is None:
                self._flags.add_bool("help", short=Unset if "-h" in self._flags else "h", usage="Show help information")
            self._prepared = True
            logger.debug("prepared %s", self.path)
        for child in self._children:
            child._parent = self
            child.prepare()
        return self

    def find_child(self, token, /):
        """
        Return the child named or aliased token (case-insensitive), else None.
        """
        return self._index.get(_normalize(token))

    def match(self, tokens, /):
        """
        Walk down from this node following tokens; returns (node, remaining tokens).

        Deterministic and side-effect free. On a root node a leading token equal
        to the root's own name is dropped first.
        """
        remaining = list(tokens)
        if self._parent is None and remaining and _normalize(remaining[0]) == _normalize(self._name):
            del remaining[0]
        current = self
        while remaining and (child := current.find_child(remaining[0])) is not None:
            current = child
            del remaining[0]
        return current, remaining

    def resolve_path(self, path, /):
        """
        Resolve a path ("config set" or ["config", "set"]) below this node; None when any step fails.
        """
        current = self
        for part in path.split() if isinstance(path, str) else path:
            if (current := current.find_child(part)) is None:
                return None
        return current

    def visible_children(self):
        """
        Non-hidden children sorted by name.
        """
        return sorted((child for child in self._children if not child.hidden), key=lambda x: x.name)

    def groups(self):
        return [child for child in self.visible_children() if child.is_group]

    def commands(self):
        return [child for child in self.visible_children() if child.is_leaf]

    def user_children(self):
        """
        Children that were not contributed by an extension.
        """
        return [child for child in self._children if not child.extension]


def command(source=Unset, /, **options):
    """
    Create a Command or return a decorator to build it later.

    Invocation modes
    - Direct callback:
        cmd = command(func, name="x", ...)
      Returns a Command whose run hook is func.
    - Decorator:
        @command(name="x", ...)
        def func(context): ...

    Defaults
    - name: the callback's __name__ with underscores turned into hyphens.
    - short: the first line of the callback's docstring.
    """
    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        settings = dict(options)
        name = settings.pop("name", source.__name__.strip("_").replace("_", "-"))
        if "short" not in settings and (doc := inspect.getdoc(source)):
            settings["short"] = doc.splitlines()[0]
        return Command(name, run=source, **settings)

    return wrapper(source) if source is not Unset else wrapper


__all__ = (
    "Command",
    "command",
)
