from tiller import *


@command(name="demo", arguments=[Argument("name", required=True, prompt="Who should be greeted")])
def root(context):
    """Greet someone, politely."""
    greeting = "HELLO" if context.bool("loud") else "hello"
    context.app.stdout.write(f"{greeting} {context.arg_named("name")}\n")


root.flags.add_bool("loud", short="l", usage="Shout the greeting")


if __name__ == '__main__':
    raise SystemExit(App("demo", root, extensions=[HelpExtension(), VersionExtension("0.1.0")]).main())
