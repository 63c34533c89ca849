"""
Command tree tests (definition, matching, preparation).

Scope
- Validate child registration and name/alias conflicts.
- Validate deterministic matching by name, alias and case.
- Validate prepare() help injection and parent wiring.
- Validate the command() factory and decorator forms.
- Validate argument specs and the named "key=value" form.

Conventions
- Test method names follow CamelCase per project convention.
"""

import unittest
from unittest import TestCase

from tiller import Argument, Command, command
from tiller.arguments import split_named


def noop(context):
    pass


def tree():
    root = Command("tool")
    remote = root.add(Command("remote", aliases=("r",), short="Manage remotes"))
    remote.add(Command("add", run=noop, arguments=[Argument("url", required=True)]))
    remote.add(Command("remove", aliases=("rm",), run=noop))
    root.add(Command("status", aliases=("st",), run=noop))
    return root.prepare()


class TestCommandDefinition(TestCase):
    def testNameMustBeOneWord(self):
        with self.assertRaises(ValueError):
            Command("two words")

    def testHookMustBeCallable(self):
        with self.assertRaises(TypeError):
            Command("tool", run="not callable")

    def testSiblingNameCollisionRaises(self):
        root = Command("tool")
        root.add(Command("status"))
        with self.assertRaises(ValueError):
            root.add(Command("Status"))

    def testAliasCollisionRaises(self):
        root = Command("tool")
        root.add(Command("status", aliases=("st",)))
        with self.assertRaises(ValueError):
            root.add(Command("stash", aliases=("st",)))

    def testGroupAndLeaf(self):
        root = tree()
        remote = root.find_child("remote")
        self.assertTrue(remote.is_group)
        self.assertFalse(remote.is_leaf)
        self.assertTrue(remote.find_child("add").is_leaf)

    def testPathAndLineage(self):
        add = tree().resolve_path("remote add")
        self.assertEqual(add.path, "tool remote add")
        self.assertEqual([node.name for node in add.lineage], ["tool", "remote", "add"])
        self.assertEqual(add.root.name, "tool")
        self.assertEqual(add.required_arguments, 1)

    def testBeforeCannotBeOverridden(self):
        node = Command("tool", run=noop)
        node.before(noop)
        with self.assertRaises(TypeError):
            node.before(noop)


class TestCommandMatching(TestCase):
    def testMatchByName(self):
        node, rest = tree().match(["remote", "add", "origin"])
        self.assertEqual(node.path, "tool remote add")
        self.assertEqual(rest, ["origin"])

    def testAliasMatchesSameNode(self):
        root = tree()
        by_name, _ = root.match(["remote", "remove"])
        by_alias, _ = root.match(["r", "rm"])
        self.assertIs(by_alias, by_name)
        self.assertIs(by_alias.flags, by_name.flags)

    def testMatchIsCaseInsensitive(self):
        node, rest = tree().match(["STATUS"])
        self.assertEqual(node.name, "status")
        self.assertEqual(rest, [])

    def testLeadingRootNameIsDropped(self):
        root = tree()
        self.assertIs(root.match(["tool", "status"])[0], root.match(["status"])[0])

    def testUnknownTokenStopsWalk(self):
        root = tree()
        node, rest = root.match(["remote", "rename", "x"])
        self.assertIs(node, root.find_child("remote"))
        self.assertEqual(rest, ["rename", "x"])

    def testEmptyTokensMatchRoot(self):
        root = tree()
        self.assertEqual(root.match([]), (root, []))

    def testResolvePathFailure(self):
        self.assertIsNone(tree().resolve_path(["remote", "nope"]))


class TestCommandPreparation(TestCase):
    def testHelpFlagInjectedEverywhere(self):
        root = tree()
        for node in (root, root.resolve_path("remote"), root.resolve_path("remote add")):
            self.assertIsNotNone(node.flags.lookup("help"))
            self.assertIsNotNone(node.flags.lookup("-h"))

    def testPrepareIsIdempotent(self):
        root = tree()
        root.prepare()
        self.assertEqual([flag.name for flag in root.flags], ["help"])

    def testTakenShortAliasIsLeftAlone(self):
        node = Command("tool", run=noop)
        node.flags.add_string("host", short="h")
        node.prepare()
        self.assertEqual(node.flags.lookup("-h").name, "host")
        self.assertIsNone(node.flags.lookup("help").short)

    def testVisibleChildrenAreSorted(self):
        root = Command("tool")
        root.add(Command("zeta", run=noop), Command("alpha", run=noop), Command("secret", run=noop, hidden=True))
        self.assertEqual([child.name for child in root.visible_children()], ["alpha", "zeta"])

    def testExtensionChildrenAreNotUserChildren(self):
        root = Command("tool", run=noop)
        root.add(Command("help", run=noop, extension=True))
        self.assertEqual(root.user_children(), [])


class TestCommandFactory(TestCase):
    def testDecoratorDerivesNameAndShort(self):
        @command
        def dry_run(context):
            """Pretend to do the work.

            More text.
            """

        self.assertEqual(dry_run.name, "dry-run")
        self.assertEqual(dry_run.short, "Pretend to do the work.")

    def testDecoratorWithOptions(self):
        @command(name="demo", aliases=("d",))
        def root(context):
            pass

        @root.command(short="Say hello")
        def greet(context):
            pass

        self.assertEqual(root.name, "demo")
        self.assertIs(root.find_child("greet"), greet)
        self.assertIs(greet.parent, root)
        self.assertEqual(greet.short, "Say hello")

    def testDirectForm(self):
        node = command(noop, name="x")
        self.assertEqual(node.name, "x")
        self.assertIs(node.run, noop)


class TestArguments(TestCase):
    def testLabel(self):
        self.assertEqual(Argument("project-id").label, "Project Id")
        self.assertEqual(Argument("url", prompt="Remote URL").label, "Remote URL")

    def testNameCannotHoldEquals(self):
        with self.assertRaises(ValueError):
            Argument("a=b")

    def testSplitNamed(self):
        arguments = [Argument("project-id"), Argument("zone")]
        named, positionals = split_named(["x", "project_id=1", "other=2", "--zone=3", "zone=b"], arguments)
        self.assertEqual(named, {"project-id": "1", "zone": "b"})
        self.assertEqual(positionals, ["x", "other=2", "--zone=3"])


if __name__ == "__main__":
    unittest.main()
