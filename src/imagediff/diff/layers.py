"""Tar layer reading and entry-level comparison."""

import hashlib
import tarfile
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..exceptions import ComparisonError
from ..options import ComparisonConfig

# Pax keys that are compared as timestamps rather than as tar format details.
_TIME_KEYS = {"mtime", "atime", "ctime"}
# Pax keys that merely carry values already compared through the header.
_VALUE_KEYS = {"path", "linkpath", "size", "uid", "gid", "uname", "gname"}
_NON_FORMAT_KEYS = _TIME_KEYS | _VALUE_KEYS
# File type bits, redundant with the header typeflag.
_TYPE_BITS = 0o170000

ConflictFn = Callable[[str, str, object, object], None]


@dataclass(frozen=True)
class TarEntry:
    """Header fields and content digest of one tar member."""

    name: str
    type: bytes
    mode: int
    uid: int
    gid: int
    uname: str
    gname: str
    size: int
    mtime: float
    atime: Optional[str]
    ctime: Optional[str]
    linkname: str
    digest: Optional[str]
    pax_keys: tuple[str, ...]


def read_entries(path: str, max_entries: int) -> List[TarEntry]:
    """Read all members of a (possibly compressed) tar blob.

    Raises:
        ComparisonError: If the blob is not a readable tar or has too many entries
    """
    entries = []
    try:
        with tarfile.open(path, "r:*") as tar:
            for member in tar:
                if len(entries) >= max_entries:
                    raise ComparisonError(
                        f"{path}: more than {max_entries} entries (see --max-scale)"
                    )
                entries.append(_entry(tar, member))
    except (tarfile.TarError, OSError, EOFError) as e:
        raise ComparisonError(f"failed to read tar layer {path}: {e}") from e
    return entries


def _entry(tar: tarfile.TarFile, member: tarfile.TarInfo) -> TarEntry:
    digest = None
    if member.isreg():
        hasher = hashlib.sha256()
        f = tar.extractfile(member)
        if f is not None:
            with f:
                for chunk in iter(lambda: f.read(1024 * 1024), b""):
                    hasher.update(chunk)
        digest = f"sha256:{hasher.hexdigest()}"
    pax = member.pax_headers
    return TarEntry(
        name=member.name,
        type=member.type,
        mode=member.mode,
        uid=member.uid,
        gid=member.gid,
        uname=member.uname,
        gname=member.gname,
        size=member.size,
        mtime=member.mtime,
        atime=pax.get("atime"),
        ctime=pax.get("ctime"),
        linkname=member.linkname,
        digest=digest,
        pax_keys=tuple(sorted(k for k in pax if k not in _NON_FORMAT_KEYS)),
    )


def canonical_path(name: str) -> str:
    """Strip leading ``./`` and ``/`` and any trailing ``/``."""
    while name.startswith("./"):
        name = name[2:]
    return name.strip("/")


def _index(entries: List[TarEntry], config: ComparisonConfig) -> Dict[str, TarEntry]:
    index: Dict[str, TarEntry] = {}
    for entry in entries:
        if "/" + canonical_path(entry.name) in config.ignore_files:
            continue
        key = canonical_path(entry.name) if config.canonical_paths else entry.name
        index[key] = entry
    return index


def _mode(mode: int, config: ComparisonConfig) -> int:
    if config.ignore_file_mode_redundant_bits:
        mode &= ~_TYPE_BITS
    if config.ignore_file_permissions:
        mode &= ~0o777
    return mode


def compare_entries(
    context: str,
    entries0: List[TarEntry],
    entries1: List[TarEntry],
    config: ComparisonConfig,
    conflict: ConflictFn,
) -> None:
    """Compare the members of two layers, reporting through ``conflict``."""
    index0 = _index(entries0, config)
    index1 = _index(entries1, config)

    if not config.ignore_file_order:
        order0 = [name for name in index0 if name in index1]
        order1 = [name for name in index1 if name in index0]
        if order0 != order1:
            conflict(context, "file order", order0, order1)

    for name in sorted(index0.keys() | index1.keys()):
        file_context = f"{context} file {name!r}"
        entry0, entry1 = index0.get(name), index1.get(name)
        if entry0 is None or entry1 is None:
            conflict(file_context, "presence", entry0 is not None, entry1 is not None)
            continue
        _compare_entry(file_context, entry0, entry1, config, conflict)


def _compare_entry(
    context: str,
    entry0: TarEntry,
    entry1: TarEntry,
    config: ComparisonConfig,
    conflict: ConflictFn,
) -> None:
    def check(kind: str, value0: object, value1: object) -> None:
        if value0 != value1:
            conflict(context, kind, value0, value1)

    check("type", entry0.type, entry1.type)
    check("link target", entry0.linkname, entry1.linkname)
    check("owner", (entry0.uid, entry0.gid), (entry1.uid, entry1.gid))
    check("owner name", (entry0.uname, entry0.gname), (entry1.uname, entry1.gname))
    if not config.ignore_file_mode:
        check("mode", oct(_mode(entry0.mode, config)), oct(_mode(entry1.mode, config)))
    if not config.ignore_file_mtime:
        check("mtime", entry0.mtime, entry1.mtime)
    if not config.ignore_file_atime:
        check("atime", entry0.atime, entry1.atime)
    if not config.ignore_file_ctime:
        check("ctime", entry0.ctime, entry1.ctime)
    check("size", entry0.size, entry1.size)
    if not config.ignore_file_content:
        check("content", entry0.digest, entry1.digest)
    if not config.ignore_tar_format:
        check("tar format", entry0.pax_keys, entry1.pax_keys)
