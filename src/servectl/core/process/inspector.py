"""
OS process and port-table inspection.

``PsutilSystemProbe`` answers every question through psutil's structured
process and connection tables. When psutil is denied (``net_connections``
needs root on macOS, for instance) it falls back to parsing ``lsof`` and
``ps`` output behind the same interface. A port query that neither source can
answer raises ``ProbeUnavailableError``; it is never reported as "free".
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

import psutil

from servectl.core.exceptions import ProbeUnavailableError, ServectlError

logger = logging.getLogger(__name__)

_TOOL_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class ProcessInfo:
    pid: int
    cmdline: Tuple[str, ...]
    cwd: Optional[Path] = None
    create_time: Optional[float] = None


class SystemProbe(Protocol):
    """OS capabilities the lifecycle manager depends on."""

    def list_processes(self) -> List[ProcessInfo]: ...

    def is_port_bound(self, port: int) -> bool: ...

    def pids_on_port(self, port: int) -> List[int]: ...

    def is_alive(self, pid: int) -> bool: ...

    def terminate(self, pid: int, *, timeout_seconds: float) -> None: ...

    def process_cwd(self, pid: int) -> Optional[Path]: ...


def is_process_alive(pid: int) -> bool:
    """Check if a process is alive by PID (zombies count as dead)."""
    if pid <= 0:
        return False
    try:
        if not psutil.pid_exists(pid):
            return False
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        # Permission denied implies the process exists but is protected
        return True


def process_cwd(pid: int) -> Optional[Path]:
    """Best-effort working directory of ``pid``: psutil, /proc, then lsof."""
    try:
        return Path(psutil.Process(pid).cwd())
    except (psutil.NoSuchProcess, psutil.ZombieProcess):
        return None
    except psutil.AccessDenied:
        pass

    proc_cwd = Path(f"/proc/{pid}/cwd")
    if proc_cwd.exists():
        try:
            return proc_cwd.resolve()
        except OSError:
            pass

    # macOS fallback
    try:
        result = subprocess.run(  # noqa: S603
            ["lsof", "-a", "-p", str(pid), "-d", "cwd", "-Fn"],
            capture_output=True,
            text=True,
            timeout=_TOOL_TIMEOUT_SECONDS,
            check=False,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    for line in (result.stdout or "").splitlines():
        if line.startswith("n") and len(line) > 1:
            return Path(line[1:])
    return None


def _ps_processes() -> List[ProcessInfo]:
    """Text fallback: parse ``ps -eo pid=,args=`` (arguments split on whitespace)."""
    try:
        result = subprocess.run(  # noqa: S603
            ["ps", "-eo", "pid=,args="],
            capture_output=True,
            text=True,
            timeout=_TOOL_TIMEOUT_SECONDS,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise ServectlError(f"Cannot list processes: {exc}") from exc
    if result.returncode != 0:
        raise ServectlError(f"ps exited with code {result.returncode}: {result.stderr.strip()}")

    out: List[ProcessInfo] = []
    for line in result.stdout.splitlines():
        parts = line.split()
        if len(parts) < 2 or not parts[0].isdigit():
            continue
        out.append(ProcessInfo(pid=int(parts[0]), cmdline=tuple(parts[1:])))
    return out


def _lsof_listeners(port: int) -> List[int]:
    """Text fallback: pids listening on ``port`` according to lsof."""
    try:
        result = subprocess.run(  # noqa: S603
            ["lsof", "-nP", f"-iTCP:{port}", "-sTCP:LISTEN", "-t"],
            capture_output=True,
            text=True,
            timeout=_TOOL_TIMEOUT_SECONDS,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ProbeUnavailableError(
            "Cannot query the port table: psutil was denied and lsof is not installed",
            context={"port": port},
        ) from exc
    except (OSError, subprocess.SubprocessError) as exc:
        raise ProbeUnavailableError(f"lsof failed: {exc}", context={"port": port}) from exc

    stderr = (result.stderr or "").strip()
    # lsof exits 1 both for "no match" and for real failures; only stderr tells them apart.
    if result.returncode not in (0, 1) or (result.returncode == 1 and stderr):
        raise ProbeUnavailableError(
            f"lsof exited with code {result.returncode}: {stderr}",
            context={"port": port},
        )
    return sorted({int(tok) for tok in result.stdout.split() if tok.isdigit()})


def _signal(proc: psutil.Process, sig: int) -> None:
    if os.name == "posix":
        try:
            if os.getpgid(proc.pid) == proc.pid:
                os.killpg(proc.pid, sig)
                return
        except ProcessLookupError:
            raise psutil.NoSuchProcess(proc.pid) from None
        except PermissionError:
            pass
    proc.send_signal(sig)


class PsutilSystemProbe:
    """Default ``SystemProbe`` backed by psutil."""

    def list_processes(self) -> List[ProcessInfo]:
        try:
            out: List[ProcessInfo] = []
            for proc in psutil.process_iter(["pid", "cmdline", "cwd", "create_time"], ad_value=None):
                info = proc.info
                cmdline = info.get("cmdline") or ()
                cwd = info.get("cwd")
                out.append(
                    ProcessInfo(
                        pid=int(info["pid"]),
                        cmdline=tuple(cmdline),
                        cwd=Path(cwd) if cwd else None,
                        create_time=info.get("create_time"),
                    )
                )
            return out
        except (psutil.Error, OSError) as exc:
            logger.debug("psutil process listing failed (%s); falling back to ps", exc)
            return _ps_processes()

    def _psutil_listeners(self, port: int) -> Optional[Tuple[bool, List[int]]]:
        """Return (bound, known pids) from psutil, or None when psutil is denied."""
        try:
            conns = psutil.net_connections(kind="tcp")
        except (psutil.AccessDenied, PermissionError, OSError) as exc:
            logger.debug("psutil.net_connections unavailable (%s); using lsof", exc)
            return None

        bound = False
        pids: set[int] = set()
        for conn in conns:
            if conn.status != psutil.CONN_LISTEN or not conn.laddr:
                continue
            if conn.laddr.port != port:
                continue
            bound = True
            if conn.pid is not None:
                pids.add(conn.pid)
        return bound, sorted(pids)

    def is_port_bound(self, port: int) -> bool:
        found = self._psutil_listeners(port)
        if found is not None:
            return found[0]
        return bool(_lsof_listeners(port))

    def pids_on_port(self, port: int) -> List[int]:
        found = self._psutil_listeners(port)
        if found is not None:
            bound, pids = found
            if not bound or pids:
                return pids
            # Bound but owners hidden from us: ask lsof.
        return _lsof_listeners(port)

    def is_alive(self, pid: int) -> bool:
        return is_process_alive(pid)

    def process_cwd(self, pid: int) -> Optional[Path]:
        return process_cwd(pid)

    def terminate(self, pid: int, *, timeout_seconds: float) -> None:
        """SIGTERM ``pid``, wait, then SIGKILL if it is still running.

        A pid that leads its own process group (every detached server does)
        is signalled as a group so helpers it forked go down with it.
        """
        try:
            proc = psutil.Process(pid)
            _signal(proc, signal.SIGTERM)
            try:
                proc.wait(timeout=max(0.1, float(timeout_seconds)))
                return
            except psutil.TimeoutExpired:
                logger.warning("pid %s ignored SIGTERM for %.1fs; sending SIGKILL", pid, timeout_seconds)
            _signal(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
            proc.wait(timeout=max(0.1, float(timeout_seconds)))
        except psutil.NoSuchProcess:
            return
        except psutil.AccessDenied as exc:
            raise ServectlError(
                f"Permission denied terminating pid {pid}",
                context={"pid": pid},
            ) from exc
        except psutil.TimeoutExpired as exc:
            raise ServectlError(
                f"pid {pid} did not exit after SIGKILL",
                context={"pid": pid},
            ) from exc


__all__ = [
    "ProcessInfo",
    "SystemProbe",
    "PsutilSystemProbe",
    "is_process_alive",
    "process_cwd",
]
