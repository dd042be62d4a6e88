"""Process launching capability for server children."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence


class LaunchedProcess(Protocol):
    """Handle on a spawned child (``subprocess.Popen`` satisfies it)."""

    pid: int

    def poll(self) -> Optional[int]: ...

    def wait(self, timeout: Optional[float] = None) -> int: ...

    def terminate(self) -> None: ...


class ProcessLauncher(Protocol):
    def launch(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        log_path: Optional[Path],
        detach: bool,
    ) -> LaunchedProcess: ...


def _popen_kwargs() -> dict[str, Any]:
    if os.name == "posix":
        return {"start_new_session": True}
    if os.name == "nt":
        creationflags = getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", None)
        if isinstance(creationflags, int):
            return {"creationflags": creationflags}
    return {}


class SubprocessLauncher:
    """Spawn children with ``subprocess.Popen``.

    Detached children get their own session and have stdout/stderr appended
    to ``log_path``; they outlive the manager process. Attached children
    inherit the terminal.
    """

    def launch(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        log_path: Optional[Path],
        detach: bool,
    ) -> subprocess.Popen:
        argv = [str(a) for a in argv]
        if not argv:
            raise ValueError("argv is empty")

        extra = _popen_kwargs() if detach else {}
        if log_path is None:
            return subprocess.Popen(  # noqa: S603
                argv,
                cwd=str(cwd),
                stdin=subprocess.DEVNULL if detach else None,
                **extra,
            )

        log_path.parent.mkdir(parents=True, exist_ok=True)
        # The child keeps its own descriptor; ours is closed once Popen returns.
        with open(log_path, "ab") as log_fh:
            return subprocess.Popen(  # noqa: S603
                argv,
                cwd=str(cwd),
                stdin=subprocess.DEVNULL,
                stdout=log_fh,
                stderr=subprocess.STDOUT,
                **extra,
            )


__all__ = ["LaunchedProcess", "ProcessLauncher", "SubprocessLauncher"]
