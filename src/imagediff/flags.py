"""Flag registry and alias expansion for the diff command.

The registry is the single source of truth for the flags of ``imagediff diff``:
the CLI builds its options from it and the options builder reads it back
through :class:`FlagSet`.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from .exceptions import ConfigurationError

BOOL = "bool"
STRING = "string"
STRING_LIST = "string-list"
FLOAT = "float"


@dataclass(frozen=True)
class FlagSpec:
    """A registered command-line flag."""

    name: str
    kind: str
    default: Any
    help: str


FLAGS: tuple[FlagSpec, ...] = (
    FlagSpec("platform", STRING_LIST, (), "Target platforms, e.g. linux/amd64 (default: host)"),
    FlagSpec("ignore-timestamps", BOOL, False, "Ignore timestamps - Alias for --ignore-*-timestamps"),
    FlagSpec("ignore-history", BOOL, False, "Ignore history"),
    FlagSpec("ignore-file-order", BOOL, False, "Ignore file order in tar layers"),
    FlagSpec("ignore-file-mode-redundant-bits", BOOL, False, "Ignore redundant bits of file mode"),
    FlagSpec("ignore-file-timestamps", BOOL, False, "Ignore timestamps on files - Alias for --ignore-file-*time"),
    FlagSpec("ignore-file-mtime", BOOL, False, "Ignore mtime timestamps on files"),
    FlagSpec("ignore-file-atime", BOOL, False, "Ignore atime timestamps on files"),
    FlagSpec("ignore-file-ctime", BOOL, False, "Ignore ctime timestamps on files"),
    FlagSpec("extra-ignore-file-permissions", BOOL, False, "Ignore permissions on files"),
    FlagSpec("extra-ignore-file-mode", BOOL, False, "Ignore file mode"),
    FlagSpec("extra-ignore-file-content", BOOL, False, "Ignore the contents of files and compare their size only"),
    FlagSpec("extra-ignore-layer-length-mismatch", BOOL, False, "Ignore if different number of files are touched in the layers"),
    FlagSpec("extra-ignore-files", STRING_LIST, (), "Ignore all diffs on specific files"),
    FlagSpec("ignore-image-timestamps", BOOL, False, "Ignore timestamps in image metadata"),
    FlagSpec("ignore-image-name", BOOL, False, "Ignore image name annotation"),
    FlagSpec("ignore-tar-format", BOOL, False, "Ignore tar format"),
    FlagSpec("treat-canonical-paths-equal", BOOL, False, "Treat leading `./` `/` `` in file paths as canonical"),
    FlagSpec("semantic", BOOL, False, "[Recommended] Alias for --ignore-*=true --treat-canonical-paths-equal"),
    FlagSpec("verbose", BOOL, False, "Verbose output"),
    FlagSpec("report-file", STRING, "", "Create a report file to the specified path (EXPERIMENTAL)"),
    FlagSpec("report-dir", STRING, "", "Create a detailed report in the specified directory"),
    FlagSpec("pull", STRING, "missing", "Pull mode (always|missing|never)"),
    FlagSpec("max-scale", FLOAT, 1.0, "Scale factor for maximum values (e.g., maxTarBlobSize = 4GiB)"),
)

FILE_TIMESTAMP_FLAGS = (
    "ignore-file-mtime",
    "ignore-file-atime",
    "ignore-file-ctime",
)

# Applied in this order; every expansion only sets its targets to True.
ALIASES: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "semantic",
        (
            "ignore-history",
            "ignore-file-order",
            "ignore-file-mode-redundant-bits",
            *FILE_TIMESTAMP_FLAGS,
            "ignore-image-timestamps",
            "ignore-image-name",
            "ignore-tar-format",
            "treat-canonical-paths-equal",
        ),
    ),
    ("ignore-timestamps", (*FILE_TIMESTAMP_FLAGS, "ignore-image-timestamps")),
    ("ignore-file-timestamps", FILE_TIMESTAMP_FLAGS),
)


def default_flags() -> dict[str, Any]:
    """Return the registered flags with their default values."""
    return {spec.name: spec.default for spec in FLAGS}


def resolve_aliases(
    flags: Mapping[str, bool],
    aliases: Iterable[tuple[str, Sequence[str]]] = ALIASES,
) -> dict[str, bool]:
    """Expand alias flags into the concrete flags they stand for.

    Args:
        flags: Raw boolean flags keyed by flag name
        aliases: Ordered ``(alias, targets)`` rules

    Returns:
        A new mapping where every target of an enabled alias is True

    Raises:
        ConfigurationError: If an alias or one of its targets is not a known flag
    """
    resolved = dict(flags)
    for alias, targets in aliases:
        if alias not in resolved:
            raise ConfigurationError(f"alias flag {alias!r} is not registered")
        if not resolved[alias]:
            continue
        for target in targets:
            if target not in resolved:
                raise ConfigurationError(
                    f"cannot expand --{alias}: flag {target!r} is not registered"
                )
            resolved[target] = True
    return resolved


class FlagSet:
    """Read-only, typed view over parsed flag values."""

    def __init__(
        self, values: Mapping[str, Any], specs: Sequence[FlagSpec] = FLAGS
    ) -> None:
        self._values = dict(values)
        self._specs = {spec.name: spec for spec in specs}

    def resolve_aliases(self) -> "FlagSet":
        """Return a new FlagSet with alias flags expanded."""
        bools = {
            name: value
            for name, value in self._values.items()
            if name in self._specs and self._specs[name].kind == BOOL
        }
        return FlagSet({**self._values, **resolve_aliases(bools)}, self._specs.values())

    def _get(self, name: str, kind: str) -> Any:
        spec = self._specs.get(name)
        if spec is None:
            raise ConfigurationError(f"flag {name!r} is not registered")
        if spec.kind != kind:
            raise ConfigurationError(
                f"flag {name!r} is registered as {spec.kind}, not {kind}"
            )
        return self._values.get(name, spec.default)

    def get_bool(self, name: str) -> bool:
        value = self._get(name, BOOL)
        if not isinstance(value, bool):
            raise ConfigurationError(f"flag {name!r}: expected bool, got {value!r}")
        return value

    def get_string(self, name: str) -> str:
        value = self._get(name, STRING)
        if not isinstance(value, str):
            raise ConfigurationError(f"flag {name!r}: expected string, got {value!r}")
        return value

    def get_float(self, name: str) -> float:
        value = self._get(name, FLOAT)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(f"flag {name!r}: expected float, got {value!r}")
        return float(value)

    def get_string_list(self, name: str) -> list[str]:
        """Return a list flag, splitting comma-separated items."""
        value = self._get(name, STRING_LIST)
        if isinstance(value, str) or not isinstance(value, (list, tuple)):
            raise ConfigurationError(f"flag {name!r}: expected list, got {value!r}")
        items: list[str] = []
        for item in value:
            if not isinstance(item, str):
                raise ConfigurationError(f"flag {name!r}: expected string items, got {item!r}")
            items.extend(part for part in item.split(",") if part)
        return items
