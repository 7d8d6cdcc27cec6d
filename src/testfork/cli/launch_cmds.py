# src/testfork/cli/launch_cmds.py

import click

from testfork.forked import launch


@click.command(name="launch")
@click.pass_context
def launch_cli(ctx: click.Context):
    """
    Child entry point: read parameters from stdin, write the framed report to stdout.

    Equivalent to ``python -m testfork.forked``. Not meant to be run by hand.
    """
    ctx.exit(launch())

# 🔼⚙️
