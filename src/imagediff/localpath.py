"""Local path helpers."""

import os
from pathlib import Path

from .exceptions import PathExpansionError


def expand(path: str) -> str:
    """Expand ``~`` and ``~user`` prefixes and return an absolute path.

    Raises:
        PathExpansionError: If the home directory cannot be determined
    """
    try:
        expanded = Path(path).expanduser()
    except RuntimeError as e:
        raise PathExpansionError(f"cannot expand {path!r}: {e}") from e
    return os.path.abspath(expanded)
