"""
Lifecycle of local ``http.server`` instances.

``ServerManager`` is built from explicit ``ManagerSettings`` plus injected OS
capabilities (``SystemProbe``, ``ProcessLauncher``, ``BrowserOpener``). It
composes the ``PortProber``, ``ProcessRegistry`` and ``LogStore`` and owns the
per-port state machine::

    UNBOUND -> STARTING -> RUNNING -> STOPPING -> UNBOUND

The registry is the source of truth for *known* instances only. Live OS
processes are cross-checked on every operation and dead records are dropped
as they are found.
"""
from __future__ import annotations

import logging
import os
import threading
import time
from datetime import timedelta
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from servectl.core.config import ManagerSettings
from servectl.core.exceptions import (
    AmbiguousTargetError,
    InvalidTargetError,
    LaunchError,
    NotFoundError,
    PortBindError,
    PortInUseError,
    ProbeUnavailableError,
    RegistryIOError,
    RestartInfoUnavailableError,
    ServectlError,
)
from servectl.core.process import (
    BrowserOpener,
    LaunchedProcess,
    ProcessInfo,
    ProcessLauncher,
    PsutilSystemProbe,
    SubprocessLauncher,
    SystemProbe,
    WebBrowserOpener,
    schedule_open,
)
from servectl.core.utils.time import from_epoch, utc_now

from .command import ServerCommand, build_server_argv, parse_server_cmdline
from .logs import LogStore
from .models import (
    ManagerStats,
    PortPreference,
    ServerInstance,
    ServerSelector,
    ServerState,
    StartMode,
    validate_port,
)
from .ports import PortProber
from .registry import ProcessRegistry

logger = logging.getLogger(__name__)

ADDRESS_IN_USE_MARKERS = ("Address already in use", "address already in use", "Errno 98", "Errno 48")

# A process created this long after its record was written is not the recorded one.
PID_REUSE_SLACK = timedelta(seconds=2)

PortArg = Union[PortPreference, int, None]
SelectorArg = Union[ServerSelector, str, int]


class ServerManager:
    def __init__(
        self,
        settings: ManagerSettings,
        *,
        system: Optional[SystemProbe] = None,
        launcher: Optional[ProcessLauncher] = None,
        browser: Optional[BrowserOpener] = None,
        registry: Optional[ProcessRegistry] = None,
        log_store: Optional[LogStore] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.system: SystemProbe = system or PsutilSystemProbe()
        self.launcher: ProcessLauncher = launcher or SubprocessLauncher()
        self.browser: BrowserOpener = browser or WebBrowserOpener()
        self.ports = PortProber(
            self.system,
            scan_limit=settings.port_scan_limit,
            default_port=settings.default_port,
        )
        self.registry = registry or ProcessRegistry(settings.registry_dir, is_live=self._record_live)
        self.logs = log_store or LogStore(settings.log_dir)
        self._sleep = sleep
        self._timers: List[threading.Timer] = []

    # ---------- start ----------

    def start(
        self,
        directory: Union[str, Path],
        port: PortArg = None,
        bind_address: Optional[str] = None,
        mode: StartMode = StartMode.BACKGROUND,
        *,
        on_started: Optional[Callable[[ServerInstance], None]] = None,
    ) -> ServerInstance:
        """Start serving ``directory``.

        ``port`` is a ``PortPreference`` (an int means an explicit port, None
        the configured default). ``on_started`` is called once the instance is
        up; in foreground modes that is before the call blocks.
        """
        root = self._validate_directory(directory)
        preference = self._coerce_preference(port)
        chosen = self._resolve_port(preference)
        bind = self.settings.bind_address if bind_address is None else bind_address.strip()
        self._claim_port(chosen)
        return self._launch(root, chosen, bind, StartMode(mode), replace=False, on_started=on_started)

    def _validate_directory(self, directory: Union[str, Path]) -> Path:
        raw = str(directory).strip()
        if not raw:
            raise InvalidTargetError("Directory must not be empty")
        path = Path(raw).expanduser()
        if not path.exists():
            raise InvalidTargetError(f"Directory does not exist: {path}", context={"directory": str(path)})
        if not path.is_dir():
            raise InvalidTargetError(f"Not a directory: {path}", context={"directory": str(path)})
        if not os.access(path, os.R_OK | os.X_OK):
            raise InvalidTargetError(f"Directory is not readable: {path}", context={"directory": str(path)})
        return path.resolve()

    def _coerce_preference(self, port: PortArg) -> PortPreference:
        if port is None:
            return PortPreference.default()
        if isinstance(port, PortPreference):
            return port
        return PortPreference.explicit(port)

    def _resolve_port(self, preference: PortPreference) -> int:
        if preference.strategy == "explicit":
            port = validate_port(preference.port)
            self._ensure_free(port)
            return port
        if preference.strategy == "default":
            port = self.settings.default_port
            self._ensure_free(port)
            return port
        if preference.strategy == "auto":
            return self.ports.find_available(preference.port or self.settings.default_port)
        if preference.strategy == "random":
            return self.ports.find_available(self.ports.random_start())
        raise InvalidTargetError(f"Unknown port strategy: {preference.strategy!r}")

    def _ensure_free(self, port: int) -> None:
        if self.ports.is_in_use(port):
            raise PortInUseError(f"Port {port} is already in use", context={"port": port})

    def _claim_port(self, port: int) -> None:
        record = self.registry.lookup(port)
        if record is not None:
            if self._record_live(record):
                raise PortInUseError(
                    f"Port {port} is already used by server pid {record.pid}",
                    context={"port": port, "pid": record.pid},
                )
            logger.warning("Reclaiming port %s from stale record (pid %s)", port, record.pid)
            self.registry.remove(port)
        self._ensure_free(port)

    def _process_info(self, pid: int) -> Optional[ProcessInfo]:
        try:
            processes = self.system.list_processes()
        except ServectlError as exc:
            logger.debug("Process listing failed while looking up pid %s: %s", pid, exc)
            return None
        for info in processes:
            if info.pid == pid:
                return info
        return None

    def _matches(self, record: ServerInstance, info: ProcessInfo) -> bool:
        """True when ``info`` is the server process ``record`` was written for."""
        cmd = parse_server_cmdline(info.cmdline, self.settings.module)
        if cmd is None:
            return False
        if record.port is not None and cmd.port != record.port:
            return False
        if info.create_time and record.started_at is not None:
            return from_epoch(info.create_time) <= record.started_at + PID_REUSE_SLACK
        return True

    def _record_live(self, record: ServerInstance) -> bool:
        """True when the recorded pid is alive and still runs the recorded server.

        A pid reused by another program makes the record stale. When the
        command line cannot be read the record is trusted.
        """
        if not self.system.is_alive(record.pid):
            return False
        info = self._process_info(record.pid)
        if info is None or not info.cmdline:
            return True
        return self._matches(record, info)

    def _launch(
        self,
        directory: Path,
        port: int,
        bind_address: str,
        mode: StartMode,
        *,
        replace: bool,
        on_started: Optional[Callable[[ServerInstance], None]] = None,
    ) -> ServerInstance:
        argv = build_server_argv(self.settings, port, directory, bind_address)
        try:
            log_path = self.logs.new_log_path(port) if mode.detached else None
        except OSError as exc:
            raise LaunchError(
                f"Cannot create a log file in {self.settings.log_dir}: {exc}",
                context={"port": port, "directory": str(directory), "log_dir": str(self.settings.log_dir)},
            ) from exc
        logger.info("port %s: %s -> %s (%s, %s)", port, ServerState.UNBOUND.value, ServerState.STARTING.value, directory, mode.value)
        try:
            proc = self.launcher.launch(argv, cwd=directory, log_path=log_path, detach=mode.detached)
        except OSError as exc:
            raise LaunchError(
                f"Could not launch server: {exc}",
                context={"port": port, "directory": str(directory)},
            ) from exc

        instance = ServerInstance(
            pid=proc.pid,
            port=port,
            directory=directory,
            log_path=log_path,
            started_at=utc_now(),
            bind_address=bind_address,
        )
        if not mode.detached:
            return self._run_foreground(proc, instance, mode, on_started)

        self._await_bind(proc, instance)
        try:
            instance = self.registry.record(instance, replace=replace)
        except PortInUseError:
            self._terminate_child(proc)
            raise
        except RegistryIOError as exc:
            logger.warning("Server pid %s is running but untracked: %s", instance.pid, exc)

        logger.info("port %s: %s (pid %s, log %s)", port, ServerState.RUNNING.value, instance.pid, log_path)
        if mode.opens_browser:
            self._schedule_browser(instance)
        if on_started is not None:
            on_started(instance)
        return instance

    def _await_bind(self, proc: LaunchedProcess, instance: ServerInstance) -> None:
        """Wait until the child owns its port; raise if it exits first."""
        port = instance.port or 0
        deadline = time.time() + max(0.0, float(self.settings.startup_timeout_seconds))
        while True:
            code = proc.poll()
            if code is not None:
                raise self._early_exit_error(instance, code)
            try:
                if self.ports.is_in_use(port):
                    owners = self._owners(port)
                    if not owners or instance.pid in owners:
                        return
            except ProbeUnavailableError as exc:
                logger.warning("Cannot confirm port %s is bound: %s", port, exc)
                return
            if time.time() >= deadline:
                logger.warning(
                    "Server pid %s has not bound port %s after %.1fs; recording it anyway",
                    instance.pid,
                    port,
                    self.settings.startup_timeout_seconds,
                )
                return
            self._sleep(self.settings.poll_interval_seconds)

    def _owners(self, port: int) -> List[int]:
        try:
            return self.ports.pids_on_port(port)
        except ServectlError:
            return []

    def _early_exit_error(self, instance: ServerInstance, code: int) -> ServectlError:
        context = {
            "port": instance.port,
            "pid": instance.pid,
            "directory": str(instance.directory),
            "exit_code": code,
            "log_path": str(instance.log_path) if instance.log_path else None,
        }
        tail = ""
        if instance.log_path is not None and instance.log_path.exists():
            try:
                tail = "\n".join(self.logs.tail(instance.log_path, lines=20))
            except ServectlError:
                tail = ""
        taken = any(marker in tail for marker in ADDRESS_IN_USE_MARKERS)
        if not taken and instance.port is not None:
            try:
                taken = self.ports.is_in_use(instance.port)
            except ServectlError:
                taken = False
        if taken:
            return PortBindError(
                f"Server could not bind port {instance.port}: address already in use",
                context=context,
            )
        detail = tail.strip().splitlines()[-1] if tail.strip() else f"exit code {code}"
        return LaunchError(f"Server exited unexpectedly: {detail}", context=context)

    def _run_foreground(
        self,
        proc: LaunchedProcess,
        instance: ServerInstance,
        mode: StartMode,
        on_started: Optional[Callable[[ServerInstance], None]],
    ) -> ServerInstance:
        timer = self._schedule_browser(instance) if mode.opens_browser else None
        if on_started is not None:
            on_started(instance)
        try:
            code = proc.wait()
        except KeyboardInterrupt:
            logger.info("Interrupted; stopping foreground server pid %s", proc.pid)
            self._terminate_child(proc)
            raise
        finally:
            if timer is not None:
                timer.cancel()
        if code is not None and code > 0:
            raise self._early_exit_error(instance, code)
        logger.info("port %s: %s (foreground pid %s exited with %s)", instance.port, ServerState.UNBOUND.value, proc.pid, code)
        return instance

    def _terminate_child(self, proc: LaunchedProcess) -> None:
        try:
            self.system.terminate(proc.pid, timeout_seconds=self.settings.shutdown_timeout_seconds)
        except ServectlError as exc:
            logger.warning("Could not terminate pid %s: %s", proc.pid, exc)
        proc.poll()

    def _schedule_browser(self, instance: ServerInstance) -> Optional[threading.Timer]:
        if not instance.url:
            return None
        timer = schedule_open(self.browser, instance.url, delay_seconds=self.settings.browser_delay_seconds)
        self._timers.append(timer)
        return timer

    def cancel_pending_browser_opens(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()

    # ---------- stop ----------

    def stop(self, selector: SelectorArg) -> ServerInstance:
        target = self._resolve_target(ServerSelector.parse(selector))
        self._stop_instance(target)
        self._forget(target)
        return target

    def _stop_instance(self, target: ServerInstance) -> None:
        logger.info("port %s: %s (pid %s)", target.port, ServerState.STOPPING.value, target.pid)
        self.system.terminate(target.pid, timeout_seconds=self.settings.shutdown_timeout_seconds)
        logger.info("port %s: %s (pid %s stopped)", target.port, ServerState.UNBOUND.value, target.pid)

    def _resolve_target(self, selector: ServerSelector) -> ServerInstance:
        if selector.pid is not None:
            pid = selector.pid
            if not self.system.is_alive(pid):
                stale = self.registry.lookup_pid(pid)
                if stale is not None and stale.port is not None:
                    self.registry.remove(stale.port)
                raise NotFoundError(f"No running process with pid {pid}", context={"pid": pid})
            record = self.registry.lookup_pid(pid)
            if record is None:
                return self._describe_pid(pid)
            if self._record_live(record):
                return record
            logger.warning("Dropping stale record for port %s (pid %s was reused)", record.port, pid)
            if record.port is not None:
                self.registry.remove(record.port)
            return self._describe_pid(pid)

        port = validate_port(selector.port)
        record = self.registry.lookup(port)
        if record is not None:
            if self._record_live(record):
                return record
            logger.warning("Dropping stale record for port %s (pid %s no longer serves it)", port, record.pid)
            self.registry.remove(port)

        pids = self.ports.pids_on_port(port)
        if not pids:
            raise NotFoundError(f"No server running on port {port}", context={"port": port})
        if len(pids) > 1:
            raise AmbiguousTargetError(
                f"Port {port} is held by several processes: {', '.join(str(p) for p in pids)}; stop one by pid",
                context={"port": port, "pids": pids},
            )
        described = self._describe_pid(pids[0])
        if described.port is None:
            described = described.with_updates(port=port)
        return described

    def _describe_pid(self, pid: int) -> ServerInstance:
        """Recover what we can about an unrecorded pid (command line, then cwd)."""
        info = self._process_info(pid)
        if info is not None:
            cmd = parse_server_cmdline(info.cmdline, self.settings.module)
            if cmd is not None:
                return self._instance_from_process(info, cmd)
        return ServerInstance(pid=pid, port=None, directory=self.system.process_cwd(pid), tracked=False)

    def _instance_from_process(self, info: ProcessInfo, cmd: ServerCommand) -> ServerInstance:
        directory = cmd.directory
        if directory is None or not directory.is_absolute():
            cwd = info.cwd or self.system.process_cwd(info.pid)
            if directory is None:
                directory = cwd
            else:
                directory = cwd / directory if cwd is not None else None
        return ServerInstance(
            pid=info.pid,
            port=cmd.port,
            directory=directory,
            started_at=from_epoch(info.create_time) if info.create_time else None,
            bind_address=cmd.bind_address,
            tracked=False,
        )

    def _forget(self, target: ServerInstance) -> None:
        """Remove the records written for ``target.pid``; other pids' records stay."""
        for record in self.registry.list_all():
            if record.pid == target.pid and record.port is not None:
                self.registry.remove(record.port)

    def stop_all(self) -> List[ServerInstance]:
        """Stop every live server and clear the registry.

        Records of servers that could not be stopped are kept.
        """
        stopped: List[ServerInstance] = []
        survivors: set[int] = set()
        for instance in self.list_servers():
            try:
                self._stop_instance(instance)
            except ServectlError as exc:
                logger.warning("Could not stop pid %s: %s", instance.pid, exc)
                if instance.port is not None:
                    survivors.add(instance.port)
                continue
            self._forget(instance)
            stopped.append(instance)
        for record in self.registry.list_all():
            if record.port is not None and record.port not in survivors:
                self.registry.remove(record.port)
        return stopped

    # ---------- restart ----------

    def restart(self, selector: SelectorArg) -> ServerInstance:
        """Stop a server and start it again in the background on the same port."""
        target = self._resolve_target(ServerSelector.parse(selector))
        if target.port is None or target.directory is None:
            raise RestartInfoUnavailableError(
                f"Cannot determine the port and directory of pid {target.pid}",
                context={"pid": target.pid, "port": target.port},
            )
        directory = self._validate_directory(target.directory)
        port = target.port

        self._stop_instance(target)
        for record in self.registry.list_all():
            if record.pid == target.pid and record.port is not None and record.port != port:
                self.registry.remove(record.port)
        try:
            self._wait_port_free(port)
            return self._launch(directory, port, target.bind_address, StartMode.BACKGROUND, replace=True)
        except ServectlError:
            self.registry.remove(port)
            raise

    def _wait_port_free(self, port: int) -> None:
        attempts = max(0, int(self.settings.restart_wait_attempts))
        for _ in range(attempts):
            if not self.ports.is_in_use(port):
                return
            self._sleep(self.settings.restart_wait_interval_seconds)
        if self.ports.is_in_use(port):
            raise PortInUseError(
                f"Port {port} is still in use after stopping its server",
                context={"port": port},
            )

    def restart_all(self) -> Tuple[List[ServerInstance], List[Tuple[ServerInstance, ServectlError]]]:
        restarted: List[ServerInstance] = []
        failures: List[Tuple[ServerInstance, ServectlError]] = []
        for instance in self.list_servers():
            try:
                restarted.append(self.restart(ServerSelector.for_pid(instance.pid)))
            except ServectlError as exc:
                logger.warning("Could not restart pid %s: %s", instance.pid, exc)
                failures.append((instance, exc))
        return restarted, failures

    # ---------- inspection ----------

    def list_servers(self) -> List[ServerInstance]:
        """Every live server process, recorded or not."""
        records = {record.pid: record for record in self.registry.list_all()}
        processes = {info.pid: info for info in self.system.list_processes()}

        found: List[ServerInstance] = []
        for info in processes.values():
            cmd = parse_server_cmdline(info.cmdline, self.settings.module)
            if cmd is None or not self.system.is_alive(info.pid):
                continue
            record = records.pop(info.pid, None)
            if record is not None and not self._matches(record, info):
                record = None
            found.append(record if record is not None else self._instance_from_process(info, cmd))

        # Recorded pids whose command line we are not allowed to read.
        for pid, record in records.items():
            info = processes.get(pid)
            if (info is None or not info.cmdline) and self.system.is_alive(pid):
                found.append(record)

        return sorted(found, key=lambda i: (i.port is None, i.port or 0, i.pid))

    def state(self, port: int) -> ServerState:
        port = validate_port(port)
        if self.ports.is_in_use(port):
            return ServerState.RUNNING
        record = self.registry.lookup(port)
        if record is not None and self._record_live(record):
            return ServerState.STARTING
        return ServerState.UNBOUND

    def open_in_browser(self, port: int) -> str:
        port = validate_port(port)
        if not self.ports.is_in_use(port):
            raise NotFoundError(f"No server running on port {port}", context={"port": port})
        record = self.registry.lookup(port)
        url = record.url if record is not None and record.url else f"http://localhost:{port}"
        if not self.browser.open_url(url):
            logger.warning("Browser did not open %s", url)
        return url

    def stats(self) -> ManagerStats:
        servers = self.list_servers()
        records = self.registry.list_all()
        orphans = tuple(r for r in records if not self._record_live(r))
        return ManagerStats(
            running=len(servers),
            untracked=sum(1 for s in servers if not s.tracked),
            tracked_records=len(records),
            orphaned_records=len(orphans),
            log_files=self.logs.count(),
            log_dir=self.settings.log_dir,
            registry_dir=self.settings.registry_dir,
            orphans=orphans,
        )

    # ---------- cleanup ----------

    def reconcile(self) -> List[ServerInstance]:
        return self.registry.reconcile()

    def prune_logs(self, older_than_days: Optional[int] = None) -> List[Path]:
        days = self.settings.log_retention_days if older_than_days is None else older_than_days
        return self.logs.prune(days)

    def purge_all(self) -> Tuple[int, int]:
        """Delete every registry record and every log; returns (records, logs)."""
        records = self.registry.purge()
        logs = len(self.logs.purge())
        logger.info("Purged %d record(s) and %d log file(s)", records, logs)
        return records, logs


__all__ = ["ServerManager"]
