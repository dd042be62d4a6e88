from __future__ import annotations

from pathlib import Path

import pytest

from servectl.core.exceptions import (
    AmbiguousTargetError,
    InvalidTargetError,
    NotFoundError,
    PortInUseError,
    RestartInfoUnavailableError,
    ServectlError,
)
from servectl.core.server import ServerInstance, ServerManager, ServerSelector

from helpers.fakes import FakeLauncher, FakeSystem


class TestStop:
    def test_stop_tracked_server_by_port(self, manager: ServerManager, system: FakeSystem, site: Path) -> None:
        started = manager.start(site, 8000)

        stopped = manager.stop(ServerSelector.for_port(8000))

        assert stopped.pid == started.pid
        assert system.terminated == [started.pid]
        assert manager.registry.lookup(8000) is None
        assert not manager.ports.is_in_use(8000)

    def test_stop_tracked_server_by_pid(self, manager: ServerManager, site: Path) -> None:
        started = manager.start(site, 8000)
        stopped = manager.stop(ServerSelector.for_pid(started.pid))
        assert stopped.port == 8000
        assert manager.registry.list_all() == []

    def test_string_selectors(self, manager: ServerManager, site: Path) -> None:
        first = manager.start(site, 8000)
        manager.start(site, 8001)
        assert manager.stop("port:8001").port == 8001
        assert manager.stop(f"pid:{first.pid}").pid == first.pid

    def test_stop_untracked_server_by_port(self, manager: ServerManager, system: FakeSystem, site: Path) -> None:
        pid = system.add_server(8500, site)

        stopped = manager.stop(8500)

        assert stopped.pid == pid
        assert stopped.directory == site
        assert stopped.tracked is False
        assert system.terminated == [pid]

    def test_port_without_server_is_not_found(self, manager: ServerManager) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            manager.stop(ServerSelector.for_port(8000))
        assert exc_info.value.context == {"port": 8000}

    def test_dead_pid_is_not_found_and_its_record_dropped(self, manager: ServerManager, site: Path) -> None:
        manager.registry.record(ServerInstance(pid=31337, port=8000, directory=site))
        with pytest.raises(NotFoundError):
            manager.stop(ServerSelector.for_pid(31337))
        assert manager.registry.lookup(8000) is None

    def test_stale_record_on_free_port_is_dropped(self, manager: ServerManager, site: Path) -> None:
        manager.registry.record(ServerInstance(pid=31337, port=8000, directory=site))
        with pytest.raises(NotFoundError):
            manager.stop(8000)
        assert manager.registry.list_all() == []

    def test_shared_port_is_ambiguous(self, manager: ServerManager, system: FakeSystem) -> None:
        system.bind(8000, 11)
        system.bind(8000, 12)
        with pytest.raises(AmbiguousTargetError) as exc_info:
            manager.stop(8000)
        assert exc_info.value.context["pids"] == [11, 12]
        assert system.terminated == []

    def test_invalid_selector(self, manager: ServerManager) -> None:
        with pytest.raises(InvalidTargetError):
            manager.stop("pid:abc")

    def test_terminate_failure_keeps_the_record(self, manager: ServerManager, system: FakeSystem, site: Path) -> None:
        started = manager.start(site, 8000)
        system.terminate_errors[started.pid] = ServectlError("Permission denied")
        with pytest.raises(ServectlError):
            manager.stop(8000)
        assert manager.registry.lookup(8000) is not None

    def test_reused_pid_is_left_alone_and_the_port_owner_stopped(
        self, manager: ServerManager, system: FakeSystem, site: Path
    ) -> None:
        started = manager.start(site, 8000)
        system.kill(started.pid)
        system.add_process(["vim", "notes.txt"], pid=started.pid)
        owner = system.add_server(8000, site)

        stopped = manager.stop(8000)

        assert stopped.pid == owner
        assert system.terminated == [owner]
        assert system.is_alive(started.pid)
        assert not manager.ports.is_in_use(8000)
        assert manager.registry.lookup(8000) is None

    def test_reused_pid_selected_by_pid_drops_the_record(
        self, manager: ServerManager, system: FakeSystem, site: Path
    ) -> None:
        started = manager.start(site, 8000)
        system.kill(started.pid)
        system.add_process(["vim", "notes.txt"], pid=started.pid)

        stopped = manager.stop(ServerSelector.for_pid(started.pid))

        assert stopped.tracked is False
        assert stopped.port is None
        assert manager.registry.list_all() == []

    def test_stopping_portless_untracked_server_keeps_other_records(
        self, manager: ServerManager, system: FakeSystem, site: Path
    ) -> None:
        tracked = manager.start(site, 8000)
        pid = system.add_process(["python3", "-m", "http.server"], cwd=site)

        stopped = manager.stop(ServerSelector.for_pid(pid))

        assert stopped.pid == pid
        assert manager.registry.lookup(8000).pid == tracked.pid


class TestStopAll:
    def test_stops_tracked_and_untracked_and_clears_registry(
        self, manager: ServerManager, system: FakeSystem, site: Path
    ) -> None:
        a = manager.start(site, 8000)
        b = manager.start(site, 8001)
        untracked = system.add_server(8500, site)
        manager.registry.record(ServerInstance(pid=31337, port=8600, directory=site))

        stopped = manager.stop_all()

        assert sorted(s.pid for s in stopped) == sorted([a.pid, b.pid, untracked])
        assert manager.registry.list_all() == []
        assert manager.list_servers() == []

    def test_unstoppable_server_keeps_its_record(self, manager: ServerManager, system: FakeSystem, site: Path) -> None:
        a = manager.start(site, 8000)
        b = manager.start(site, 8001)
        system.terminate_errors[b.pid] = ServectlError("denied")

        stopped = manager.stop_all()

        assert [s.pid for s in stopped] == [a.pid]
        assert [r.port for r in manager.registry.list_all()] == [8001]

    def test_nothing_running(self, manager: ServerManager) -> None:
        assert manager.stop_all() == []


class TestRestart:
    def test_restart_reuses_port_and_directory_with_new_pid(
        self, manager: ServerManager, system: FakeSystem, launcher: FakeLauncher, site: Path
    ) -> None:
        old = manager.start(site, 8000, "127.0.0.1")

        fresh = manager.restart(ServerSelector.for_port(8000))

        assert fresh.pid != old.pid
        assert (fresh.port, fresh.directory, fresh.bind_address) == (8000, old.directory, "127.0.0.1")
        assert not system.is_alive(old.pid)
        assert manager.registry.lookup(8000).pid == fresh.pid
        assert launcher.calls[-1]["detach"] is True

    def test_restart_untracked_server_resolves_directory_from_cwd(
        self, manager: ServerManager, system: FakeSystem, launcher: FakeLauncher, site: Path
    ) -> None:
        pid = system.add_server(8100, cwd=site)

        fresh = manager.restart(ServerSelector.for_pid(pid))

        assert fresh.port == 8100
        assert fresh.directory == site.resolve()
        assert launcher.calls[-1]["cwd"] == site.resolve()
        assert fresh.tracked

    def test_unknown_directory_cannot_restart(self, manager: ServerManager, system: FakeSystem) -> None:
        pid = system.add_process(["node", "server.js"])
        system.bind(3000, pid)

        with pytest.raises(RestartInfoUnavailableError):
            manager.restart(3000)
        assert system.is_alive(pid)

    def test_port_still_bound_after_stop_fails_and_drops_record(
        self, manager: ServerManager, system: FakeSystem, site: Path
    ) -> None:
        manager.start(site, 8000)
        system.lingering_ports.add(8000)

        with pytest.raises(PortInUseError, match="still in use"):
            manager.restart(8000)
        assert manager.registry.lookup(8000) is None

    def test_restart_dead_pid_is_not_found(self, manager: ServerManager) -> None:
        with pytest.raises(NotFoundError):
            manager.restart(ServerSelector.for_pid(31337))

    def test_restart_all_reports_each_outcome(self, manager: ServerManager, system: FakeSystem, site: Path) -> None:
        a = manager.start(site, 8000)
        b = manager.start(site, 8001)
        system.terminate_errors[b.pid] = ServectlError("denied")

        restarted, failures = manager.restart_all()

        assert [r.port for r in restarted] == [8000]
        assert restarted[0].pid != a.pid
        assert [(inst.pid, str(exc)) for inst, exc in failures] == [(b.pid, "denied")]
