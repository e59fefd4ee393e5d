"""Click CLI entry point for safefix."""

from __future__ import annotations

import logging

import click

from safefix._version import __version__


@click.group()
@click.version_option(version=__version__, prog_name="safefix")
@click.option("--verbose", "-v", is_flag=True, help="Show detailed log output")
def cli(verbose: bool):
    """safefix - remove debug leftovers without breaking your build.

    Every run is a transaction: changes are backed up, validated, and
    rolled back if your checks fail.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# Import and register subcommands
from safefix.cli.fix_cmd import fix  # noqa: E402
from safefix.cli.gc_cmd import gc  # noqa: E402
from safefix.cli.recover_cmd import recover  # noqa: E402

cli.add_command(fix)
cli.add_command(gc)
cli.add_command(recover)


if __name__ == "__main__":
    cli()
