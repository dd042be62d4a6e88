"""In-memory stand-ins for the OS capabilities the manager depends on.

``FakeSystem`` keeps a process table, a set of live pids and a port table.
``FakeLauncher`` "spawns" servers into it: the child appears in the process
table with the real argv and, unless told otherwise, binds its port.
"""
from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from servectl.core.exceptions import ProbeUnavailableError, ServectlError
from servectl.core.process import ProcessInfo


class FakeSystem:
    def __init__(self) -> None:
        self.processes: Dict[int, ProcessInfo] = {}
        self.alive: set[int] = set()
        self.listeners: Dict[int, List[int]] = {}
        self.probe_error: Optional[Exception] = None
        self.terminated: List[int] = []
        self.terminate_errors: Dict[int, ServectlError] = {}
        # Ports that stay bound (owner unknown) after their server dies.
        self.lingering_ports: set[int] = set()
        self._next_pid = 4000

    def next_pid(self) -> int:
        self._next_pid += 1
        return self._next_pid

    def add_process(
        self,
        cmdline: Sequence[str],
        *,
        pid: Optional[int] = None,
        cwd: Optional[Path] = None,
        create_time: Optional[float] = None,
    ) -> int:
        pid = pid if pid is not None else self.next_pid()
        self.processes[pid] = ProcessInfo(pid=pid, cmdline=tuple(cmdline), cwd=cwd, create_time=create_time)
        self.alive.add(pid)
        return pid

    def add_server(
        self,
        port: int,
        directory: Optional[Path] = None,
        *,
        pid: Optional[int] = None,
        cwd: Optional[Path] = None,
        bind: str = "",
    ) -> int:
        argv = ["python3", "-m", "http.server", str(port)]
        if directory is not None:
            argv += ["--directory", str(directory)]
        if bind:
            argv += ["--bind", bind]
        pid = self.add_process(argv, pid=pid, cwd=cwd, create_time=1_700_000_000.0)
        self.bind(port, pid)
        return pid

    def bind(self, port: int, pid: Optional[int] = None) -> None:
        owners = self.listeners.setdefault(port, [])
        if pid is not None and pid not in owners:
            owners.append(pid)

    def kill(self, pid: int) -> None:
        self.alive.discard(pid)
        self.processes.pop(pid, None)
        for port in list(self.listeners):
            owners = self.listeners[port]
            if pid in owners:
                owners.remove(pid)
                if not owners and port not in self.lingering_ports:
                    del self.listeners[port]

    # ---------- SystemProbe ----------

    def list_processes(self) -> List[ProcessInfo]:
        return list(self.processes.values())

    def is_port_bound(self, port: int) -> bool:
        if self.probe_error is not None:
            raise self.probe_error
        return port in self.listeners

    def pids_on_port(self, port: int) -> List[int]:
        if self.probe_error is not None:
            raise self.probe_error
        return sorted(self.listeners.get(port, []))

    def is_alive(self, pid: int) -> bool:
        return pid in self.alive

    def terminate(self, pid: int, *, timeout_seconds: float) -> None:
        self.terminated.append(pid)
        if pid in self.terminate_errors:
            raise self.terminate_errors[pid]
        self.kill(pid)

    def process_cwd(self, pid: int) -> Optional[Path]:
        info = self.processes.get(pid)
        return info.cwd if info is not None else None


def probe_failure() -> ProbeUnavailableError:
    return ProbeUnavailableError("port table unavailable")


class FakeProcess:
    def __init__(
        self,
        system: FakeSystem,
        pid: int,
        *,
        exit_code: Optional[int] = None,
        wait_result: int = 0,
        interrupt: bool = False,
        wait_hook: Optional[Callable[[], None]] = None,
    ) -> None:
        self.system = system
        self.pid = pid
        self.returncode = exit_code
        self.wait_result = wait_result
        self.interrupt = interrupt
        self.wait_hook = wait_hook
        self.terminated = False

    def poll(self) -> Optional[int]:
        if self.returncode is None and not self.system.is_alive(self.pid):
            self.returncode = -15
        return self.returncode

    def wait(self, timeout: Optional[float] = None) -> int:
        if self.wait_hook is not None:
            self.wait_hook()
        if self.interrupt:
            raise KeyboardInterrupt
        if self.returncode is None:
            self.returncode = self.wait_result
            self.system.kill(self.pid)
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        self.system.kill(self.pid)


class FakeLauncher:
    """Records launches and simulates the child.

    ``exit_code`` makes the child die during startup after writing
    ``output`` to its log; ``bind=False`` leaves the port unbound.
    """

    def __init__(
        self,
        system: FakeSystem,
        *,
        bind: bool = True,
        exit_code: Optional[int] = None,
        output: str = "",
        wait_result: int = 0,
        interrupt: bool = False,
        wait_hook: Optional[Callable[[], None]] = None,
    ) -> None:
        self.system = system
        self.bind = bind
        self.exit_code = exit_code
        self.output = output
        self.wait_result = wait_result
        self.interrupt = interrupt
        self.wait_hook = wait_hook
        self.calls: List[dict] = []
        self.error: Optional[OSError] = None

    def launch(self, argv: Sequence[str], *, cwd: Path, log_path: Optional[Path], detach: bool) -> FakeProcess:
        if self.error is not None:
            raise self.error
        pid = self.system.next_pid()
        self.calls.append({"argv": list(argv), "cwd": cwd, "log_path": log_path, "detach": detach, "pid": pid})
        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            log_path.write_text(self.output, encoding="utf-8")
        if self.exit_code is not None:
            return FakeProcess(self.system, pid, exit_code=self.exit_code)

        self.system.add_process(list(argv), pid=pid, cwd=cwd)
        if self.bind:
            self.system.bind(int(argv[3]), pid)
        return FakeProcess(
            self.system,
            pid,
            wait_result=self.wait_result,
            interrupt=self.interrupt,
            wait_hook=self.wait_hook,
        )


class FakeBrowser:
    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.opened: List[str] = []
        self.event = threading.Event()

    def open_url(self, url: str) -> bool:
        self.opened.append(url)
        self.event.set()
        return self.result


def scripted_input(*answers: str) -> Callable[[str], str]:
    """An ``input()`` replacement that replays ``answers`` then raises EOFError."""
    remaining = list(answers)
    prompts: List[str] = []

    def _input(prompt: str = "") -> str:
        prompts.append(prompt)
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    _input.prompts = prompts  # type: ignore[attr-defined]
    return _input
