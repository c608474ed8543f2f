"""Comparison configuration built from resolved flags."""

import logging
from dataclasses import dataclass, field

from .events import DEFAULT_EVENT_HANDLER, VERBOSE_EVENT_HANDLER, DefaultEventHandler
from .exceptions import PathExpansionError
from .flags import FlagSet
from .localpath import expand

logger = logging.getLogger(__name__)

MAX_TAR_BLOB_SIZE = 4 * 1024 * 1024 * 1024  # 4GiB
MAX_TAR_ENTRIES = 1024 * 1024


@dataclass(frozen=True)
class ComparisonConfig:
    """Immutable options handed to the diff engine."""

    ignore_history: bool = False
    ignore_file_order: bool = False
    ignore_file_mode_redundant_bits: bool = False
    ignore_file_mtime: bool = False
    ignore_file_atime: bool = False
    ignore_file_ctime: bool = False
    ignore_file_permissions: bool = False
    ignore_file_mode: bool = False
    ignore_file_content: bool = False
    ignore_layer_length_mismatch: bool = False
    ignore_files: frozenset[str] = frozenset()
    ignore_image_timestamps: bool = False
    ignore_image_name: bool = False
    ignore_tar_format: bool = False
    canonical_paths: bool = False
    max_scale: float = 1.0
    report_file: str = ""
    report_dir: str = ""
    event_handler: DefaultEventHandler = field(default=DEFAULT_EVENT_HANDLER, compare=False)

    @property
    def max_tar_blob_size(self) -> int:
        return int(MAX_TAR_BLOB_SIZE * self.max_scale)

    @property
    def max_tar_entries(self) -> int:
        return int(MAX_TAR_ENTRIES * self.max_scale)


def _expand_path_flag(name: str, value: str) -> str:
    if not value:
        return value
    try:
        return expand(value)
    except PathExpansionError as e:
        raise PathExpansionError(f"invalid {name} path {value!r}: {e}") from e


def build_options(flags: FlagSet) -> tuple[ComparisonConfig, str]:
    """Build the comparison configuration from alias-resolved flags.

    Args:
        flags: Flags with aliases already expanded

    Returns:
        The configuration and the raw ``pull`` flag value

    Raises:
        ConfigurationError: If a flag is missing or has the wrong type
        PathExpansionError: If ``report-file`` or ``report-dir`` cannot be expanded
    """
    report_file = flags.get_string("report-file")
    if report_file:
        logger.warning("report-file is experimental. The file format is subject to change.")

    event_handler: DefaultEventHandler = DEFAULT_EVENT_HANDLER
    if flags.get_bool("verbose"):
        event_handler = VERBOSE_EVENT_HANDLER

    config = ComparisonConfig(
        ignore_history=flags.get_bool("ignore-history"),
        ignore_file_order=flags.get_bool("ignore-file-order"),
        ignore_file_mode_redundant_bits=flags.get_bool("ignore-file-mode-redundant-bits"),
        ignore_file_mtime=flags.get_bool("ignore-file-mtime"),
        ignore_file_atime=flags.get_bool("ignore-file-atime"),
        ignore_file_ctime=flags.get_bool("ignore-file-ctime"),
        ignore_file_permissions=flags.get_bool("extra-ignore-file-permissions"),
        ignore_file_mode=flags.get_bool("extra-ignore-file-mode"),
        ignore_file_content=flags.get_bool("extra-ignore-file-content"),
        ignore_layer_length_mismatch=flags.get_bool("extra-ignore-layer-length-mismatch"),
        ignore_files=frozenset(flags.get_string_list("extra-ignore-files")),
        ignore_image_timestamps=flags.get_bool("ignore-image-timestamps"),
        ignore_image_name=flags.get_bool("ignore-image-name"),
        ignore_tar_format=flags.get_bool("ignore-tar-format"),
        canonical_paths=flags.get_bool("treat-canonical-paths-equal"),
        max_scale=flags.get_float("max-scale"),
        report_file=_expand_path_flag("report-file", report_file),
        report_dir=_expand_path_flag("report-dir", flags.get_string("report-dir")),
        event_handler=event_handler,
    )
    return config, flags.get_string("pull")
