"""Per-target renaming of generated package manifests."""
from __future__ import annotations

from pathlib import Path
import os
import re
import shutil
import tempfile

from .errors import FilesystemError, ManifestFormatError, Phase
from .targets import Target


def quoted(name: str) -> bytes:
    return f'"{name}"'.encode("utf-8")


def rewrite_name(content: bytes, target: Target, *, path: Path) -> bytes:
    """Return ``content`` with the ``name`` value renamed for ``target``.

    The value must equal the quoted package name exactly and follow a ``"name"``
    key, so other fields holding the same string and names that merely start
    with it (``"@scope/base-extra"``) are left alone. The key and the
    separator after it are kept byte for byte.
    """

    needle = quoted(target.manifest_name)
    match = re.search(rb'"name"\s*:\s*' + re.escape(needle), content)
    if match is None:
        raise ManifestFormatError(target_name=target.name, path=path, pattern=needle.decode("utf-8"))
    value_start = match.end() - len(needle)
    return content[:value_start] + quoted(target.patched_manifest_name) + content[match.end():]


def _fsync_directory(directory: Path) -> None:
    if os.name != "posix":
        return
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` so readers see either the old or the new file."""

    with tempfile.NamedTemporaryFile(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
    ) as temp_handle:
        temp_path = Path(temp_handle.name)
        try:
            temp_handle.write(data)
            temp_handle.flush()
            os.fsync(temp_handle.fileno())
        except BaseException:
            temp_handle.close()
            temp_path.unlink(missing_ok=True)
            raise

    try:
        if path.exists():
            shutil.copymode(path, temp_path)
        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise
    _fsync_directory(path.parent)


def patch_manifest(target: Target, path: Path) -> Path:
    """Rename the package in the manifest at ``path`` and return the path."""

    try:
        content = path.read_bytes()
    except OSError as exc:
        raise FilesystemError(
            f"cannot read manifest {path}: {exc.strerror or exc}",
            target_name=target.name,
            phase=Phase.PATCH,
            path=path,
        ) from exc

    updated = rewrite_name(content, target, path=path)

    try:
        atomic_write(path, updated)
    except OSError as exc:
        raise FilesystemError(
            f"cannot write manifest {path}: {exc.strerror or exc}",
            target_name=target.name,
            phase=Phase.PATCH,
            path=path,
        ) from exc
    return path
