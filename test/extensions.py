"""
Extension tests (help, version and config commands).

Conventions
- Test method names follow CamelCase per project convention.
- Every App gets in-memory streams, an empty environment and a config file
  inside a temporary directory.
"""

import io
import os
import tempfile
import unittest
from unittest import TestCase

from tiller import (
    App,
    Command,
    ConfigExtension,
    ConfigManager,
    ConfigSchema,
    Extension,
    HelpExtension,
    Kind,
    VersionExtension,
)
from tiller.faults import ConfigKeyError, UnknownCommandError, ValidationError


def noop(context):
    pass


class ExtensionTestCase(TestCase):
    def setUp(self):
        self.directory = tempfile.TemporaryDirectory()
        self.addCleanup(self.directory.cleanup)
        self.config_path = os.path.join(self.directory.name, "tool", "config.yaml")

    def build(self, root, *extensions, **options):
        self.stdout = io.StringIO()
        return App(
            "tool",
            root,
            stdin=io.StringIO(),
            stdout=self.stdout,
            stderr=io.StringIO(),
            environ={},
            config_path=self.config_path,
            extensions=extensions,
            **options,
        )


class TestHelpExtension(ExtensionTestCase):
    def testSatisfiesProtocol(self):
        self.assertIsInstance(HelpExtension(), Extension)

    def testRootStillRunsWithOnlyExtensionChildren(self):
        calls = []
        app = self.build(Command("tool", run=calls.append), HelpExtension())
        context = app.run([])
        self.assertEqual(calls, [context])

    def testHelpForCommandPath(self):
        root = Command("tool")
        remote = root.add(Command("remote", short="Manage remotes"))
        remote.add(Command("add", short="Add a remote", run=noop))
        self.build(root, HelpExtension()).run(["help", "remote"])
        output = self.stdout.getvalue()
        self.assertIn("Manage remotes", output)
        self.assertIn("Add a remote", output)

    def testHelpWithoutPathShowsRoot(self):
        root = Command("tool", short="The demo tool", run=noop)
        self.build(root, HelpExtension()).run(["help"])
        self.assertIn("The demo tool", self.stdout.getvalue())

    def testUnknownPathRaises(self):
        with self.assertRaises(UnknownCommandError) as caught:
            self.build(Command("tool", run=noop), HelpExtension()).run(["help", "nope"])
        self.assertEqual(str(caught.exception), "unknown command: nope")


class TestVersionExtension(ExtensionTestCase):
    def testVersionCommand(self):
        app = self.build(Command("tool", run=noop), VersionExtension("2.0.0", commit="abc123"))
        app.run(["version"])
        self.assertEqual(self.stdout.getvalue(), "tool version 2.0.0\ncommit: abc123\n")

    def testVersionFlagIsEnabled(self):
        app = self.build(Command("tool", run=noop), VersionExtension("2.0.0"))
        self.assertIsNone(app.run(["-v"]))
        self.assertEqual(self.stdout.getvalue(), "tool version 2.0.0\n")

    def testEmptyVersionReadsDev(self):
        app = self.build(Command("tool", run=noop), VersionExtension())
        app.run(["version"])
        self.assertEqual(self.stdout.getvalue(), "tool version dev\n")


class TestConfigExtension(ExtensionTestCase):
    def setUp(self):
        super().setUp()
        self.store = ConfigManager("tool")
        self.store.register_schema(ConfigSchema("retries", Kind.INT))

    def app(self):
        return self.build(Command("tool", run=noop), ConfigExtension(), config=self.store)

    def testSetNormalizesAndPersists(self):
        self.app().run(["config", "set", "retries", "+5"])
        self.assertEqual(self.stdout.getvalue(), "retries = 5\n")

        reloaded = ConfigManager("tool")
        reloaded.load(self.config_path)
        self.assertEqual(reloaded.get("retries"), ("5", True))

    def testSetRejectsMismatchedKind(self):
        with self.assertRaises(ValidationError):
            self.app().run(["config", "set", "retries", "many"])
        self.assertFalse(os.path.exists(self.config_path))

    def testGetAndList(self):
        self.store.set("region", "eu")
        app = self.app()
        app.run(["config", "get", "region"])
        app.run(["config", "list"])
        self.assertEqual(self.stdout.getvalue(), "eu\nregion: eu\n")

    def testGetMissingKeyRaises(self):
        with self.assertRaises(ConfigKeyError) as caught:
            self.app().run(["config", "get", "nope"])
        self.assertEqual(str(caught.exception), "configuration key not found: nope")

    def testUnsetAndReset(self):
        self.store.set("region", "eu")
        app = self.app()
        app.run(["config", "unset", "region"])
        app.run(["config", "unset", "region"])
        app.run(["config", "reset"])
        self.assertEqual(
            self.stdout.getvalue(),
            "region removed\nregion removed (no value stored)\nConfiguration cleared\n",
        )

    def testGroupShowsHelp(self):
        self.assertIsNone(self.app().run(["config"]))
        self.assertIn("Remove all persisted configuration", self.stdout.getvalue())

    def testSkippedWithoutStore(self):
        app = self.build(Command("tool", run=noop), ConfigExtension(), config=None)
        app.prepare()
        self.assertIsNone(app.root.find_child("config"))


if __name__ == "__main__":
    unittest.main()
