"""Orchestration of the diff command.

``run_diff`` drives the whole flow and returns an :class:`Outcome`; the CLI
turns that into the process exit status once every resource is released.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from .backend import Backend, BackendConfig
from .diff import ReportNode, diff
from .exceptions import ComparisonError, ImageDiffError, UnavailableError
from .flags import FlagSet
from .imagegetter import ImageGetter
from .models import ResolvedImage
from .options import ComparisonConfig, build_options
from .platforms import Platform, PlatformMatcher, format_platforms, parse_platforms
from .store import ContentStore

logger = logging.getLogger(__name__)

EXIT_CLEAN = 0
EXIT_DIFFERENCES = 1
EXIT_FAILURE = 2

PLATFORM_HINT = "(Hint: specify `--platform` explicitly, e.g., `--platform=linux/amd64`)"

ImagePair = tuple[ResolvedImage, ResolvedImage]


@dataclass(frozen=True)
class Outcome:
    """Terminal state of one diff run."""

    exit_code: int
    error: Optional[BaseException] = None

    @property
    def state(self) -> str:
        return {
            EXIT_CLEAN: "clean",
            EXIT_DIFFERENCES: "differences",
            EXIT_FAILURE: "failed",
        }[self.exit_code]


def interpret(report: Optional[ReportNode], error: Optional[BaseException]) -> Outcome:
    """Classify a comparison result and log it.

    An error always wins over the report, even when a partial report came
    back with it.
    """
    if error is not None:
        if isinstance(error, UnavailableError):
            error = UnavailableError(f"{error} {PLATFORM_HINT}", error.report)
        logger.error(str(error))
        outcome = Outcome(EXIT_FAILURE, error)
    elif report is not None and len(report.children) > 0:
        outcome = Outcome(EXIT_DIFFERENCES)
    else:
        outcome = Outcome(EXIT_CLEAN)
    if outcome.exit_code != 0:
        logger.debug(f"exiting with code {outcome.exit_code}")
    return outcome


async def acquire_images(
    getter: ImageGetter,
    refs: tuple[str, str],
    platforms: Sequence[Platform],
    mode: str,
) -> ImagePair:
    """Resolve both references in order; input 0 is always resolved first."""
    resolved = []
    for i, ref in enumerate(refs):
        image = await getter.get(ref, platforms, mode)
        logger.debug(f"Input {i}: Image {image.name!r} ({image.target.digest})")
        resolved.append(image)
    return resolved[0], resolved[1]


async def compare(
    store: ContentStore,
    images: ImagePair,
    matcher: PlatformMatcher,
    config: ComparisonConfig,
) -> tuple[Optional[ReportNode], Optional[ComparisonError]]:
    """Invoke the diff engine once, keeping any partial report next to the error."""
    try:
        report = await diff(store, (images[0].target, images[1].target), matcher, config)
    except ComparisonError as e:
        return e.report, e
    return report, None


async def run_diff(
    refs: Sequence[str],
    flags: Mapping[str, Any],
    backend_config: BackendConfig,
) -> Outcome:
    """Run the diff command end to end.

    Args:
        refs: Exactly two image references
        flags: Raw flag values keyed by flag name
        backend_config: Where the content store lives

    Returns:
        The outcome; the backend is closed before this returns
    """
    if len(refs) != 2:
        raise ValueError(f"expected exactly 2 image references, got {len(refs)}")
    try:
        flagset = FlagSet(flags).resolve_aliases()
        platforms = parse_platforms(flagset.get_string_list("platform"))
        logger.info(f"Target platforms: {format_platforms(platforms)}")
        matcher = PlatformMatcher(platforms)
        config, pull_mode = build_options(flagset)

        async with Backend(backend_config) as backend:
            images = await acquire_images(
                ImageGetter(backend), (refs[0], refs[1]), platforms, pull_mode
            )
            report, error = await compare(backend.content_store, images, matcher, config)
    except ImageDiffError as e:
        return interpret(None, e)
    return interpret(report, error)
