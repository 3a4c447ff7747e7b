"""File mode and owner snapshots carried across rotations."""

from __future__ import annotations

import os
import stat
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

DEFAULT_FILE_MODE = 0o600

OwnerGetter = Callable[[str | Path], tuple[int, int]]
Chowner = Callable[[str | Path, int, int], None]


def get_owner(path: str | Path) -> tuple[int, int]:
    """Return ``(uid, gid)`` of ``path``."""

    info = os.stat(path)
    return info.st_uid, info.st_gid


def chown(path: str | Path, uid: int, gid: int) -> None:
    """Change the owner of ``path``; a no-op where the platform has no owners."""

    os_chown = getattr(os, "chown", None)
    if os_chown is None:
        return
    os_chown(path, uid, gid)


def file_mode_is_set(mode: int) -> bool:
    """Zero means "unset": inherit from an existing file or use the default."""

    return mode != 0


@dataclass(frozen=True)
class PermissionSnapshot:
    """Mode and owner to give every file the sink creates.

    ``owner`` is None when the active file did not exist before the sink
    created it; new files then keep the owner of the current process.
    """

    mode: int
    owner: tuple[int, int] | None = None

    @classmethod
    def capture(
        cls,
        path: str | Path,
        configured_mode: int = 0,
        *,
        get_owner: OwnerGetter = get_owner,
    ) -> PermissionSnapshot:
        """Snapshot a pre-existing file; a configured mode wins over the file's bits."""

        if file_mode_is_set(configured_mode):
            mode = configured_mode
        else:
            mode = stat.S_IMODE(os.stat(path).st_mode)
        return cls(mode=mode, owner=get_owner(path))

    @classmethod
    def for_new_file(cls, configured_mode: int = 0) -> PermissionSnapshot:
        mode = configured_mode if file_mode_is_set(configured_mode) else DEFAULT_FILE_MODE
        return cls(mode=mode)

    def apply(self, path: str | Path, *, chown: Chowner = chown) -> OSError | None:
        """Apply mode and owner to ``path``.

        The mode is set explicitly so the process umask never narrows it.
        Changing the owner needs privilege the process may not have; that
        failure is returned instead of raised.
        """

        os.chmod(path, self.mode)
        if self.owner is None:
            return None
        uid, gid = self.owner
        try:
            chown(path, uid, gid)
        except OSError as exc:
            return exc
        return None
