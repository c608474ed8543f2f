"""Command-line interface (exposed as ``imagediff``)."""

import asyncio
import logging
from typing import List, Optional

import click

from . import __version__
from .backend import BackendConfig
from .exceptions import ImageDiffError
from .flags import BOOL, FLAGS, FLOAT, STRING_LIST
from .pipeline import EXIT_FAILURE, run_diff

logger = logging.getLogger(__name__)

EXAMPLES = """\b
Examples:
  # Basic
  imagediff diff --semantic alpine:3.18.2 alpine:3.18.3

  # Dump a report to ~/diff
  imagediff diff --semantic --report-dir=~/diff alpine:3.18.2 alpine:3.18.3

  # Compare images saved with `docker save`
  imagediff diff --semantic docker-archive:foo.tar docker-archive:bar.tar
"""

BOOL_FLAG_NAMES = frozenset(spec.name for spec in FLAGS if spec.kind == BOOL)


def normalize_bool_flags(args: List[str], ctx: Optional[click.Context] = None) -> List[str]:
    """Rewrite ``--flag=true`` / ``--flag=false`` for boolean flags.

    The last occurrence of a flag wins, so ``--semantic --semantic=false``
    leaves it unset.
    """
    result: List[str] = []
    for i, arg in enumerate(args):
        if arg == "--":
            return result + args[i:]
        name, sep, value = arg.partition("=")
        if not sep or not name.startswith("--") or name[2:] not in BOOL_FLAG_NAMES:
            result.append(arg)
            continue
        try:
            enabled = click.BOOL.convert(value, None, ctx)
        except click.BadParameter as e:
            raise click.BadParameter(e.message, ctx=ctx, param_hint=f"'{name}'") from e
        result = [a for a in result if a != name]
        if enabled:
            result.append(name)
    return result


class DiffCommand(click.Command):
    """Command whose boolean flags also take an explicit ``=true|false``."""

    def parse_args(self, ctx: click.Context, args: List[str]) -> List[str]:
        return super().parse_args(ctx, normalize_bool_flags(args, ctx))


def _flag_options(func):
    """Attach one click option per registered flag."""
    for spec in reversed(FLAGS):
        param = spec.name.replace("-", "_")
        if spec.kind == BOOL:
            option = click.option(f"--{spec.name}", param, is_flag=True, default=spec.default, help=spec.help)
        elif spec.kind == STRING_LIST:
            option = click.option(f"--{spec.name}", param, multiple=True, default=spec.default, help=spec.help)
        elif spec.kind == FLOAT:
            option = click.option(f"--{spec.name}", param, type=float, default=spec.default, show_default=True, help=spec.help)
        else:
            option = click.option(f"--{spec.name}", param, default=spec.default, show_default=bool(spec.default), help=spec.help)
        func = option(func)
    return func


@click.group()
@click.version_option(__version__, prog_name="imagediff")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug: bool) -> None:
    """Compare container images."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(levelname)s: %(message)s",
    )


@cli.command("diff", cls=DiffCommand, epilog=EXAMPLES)
@click.argument("image0")
@click.argument("image1")
@_flag_options
@click.pass_context
def diff_command(ctx: click.Context, image0: str, image1: str, **params) -> None:
    """Diff images IMAGE0 and IMAGE1.

    Exits with 0 when no difference is found, 1 when differences are found
    and 2 on failure.
    """
    flags = {name.replace("_", "-"): value for name, value in params.items()}
    try:
        outcome = asyncio.run(run_diff((image0, image1), flags, BackendConfig.from_env()))
    except ImageDiffError as e:
        logger.error(str(e))
        ctx.exit(EXIT_FAILURE)
    except Exception:
        logger.exception("unexpected error")
        ctx.exit(EXIT_FAILURE)
    ctx.exit(outcome.exit_code)


def main() -> None:
    cli()
