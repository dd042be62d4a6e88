import sys
from pathlib import Path

import pytest

# Keep the repository free of Python bytecode and __pycache__ artifacts during tests.
sys.dont_write_bytecode = True

TESTS_ROOT = Path(__file__).resolve().parent
REPO_ROOT = TESTS_ROOT.parent
SRC_ROOT = REPO_ROOT / "src"

# Make src/ importable as 'servectl' and tests/helpers as 'helpers'
for p in (SRC_ROOT, TESTS_ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))


from servectl.core.config import ManagerSettings
from servectl.core.server import ServerManager
from servectl.core.stdlib_logging import reset_logging_for_tests
from helpers.fakes import FakeBrowser, FakeLauncher, FakeSystem


@pytest.fixture(autouse=True)
def _isolate_servectl_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Never read the developer's own config or env overrides."""
    import os

    for key in list(os.environ):
        if key.startswith("SERVECTL_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("SERVECTL_CONFIG", str(tmp_path / "no-user-config.yaml"))
    yield
    reset_logging_for_tests()


@pytest.fixture
def site(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    root.mkdir()
    (root / "index.html").write_text("<h1>hello</h1>\n", encoding="utf-8")
    return root


@pytest.fixture
def settings(tmp_path: Path) -> ManagerSettings:
    return ManagerSettings(
        python_executable="python3",
        browser_delay_seconds=0.0,
        startup_timeout_seconds=0.0,
        shutdown_timeout_seconds=0.1,
        poll_interval_seconds=0.01,
        restart_wait_attempts=3,
        restart_wait_interval_seconds=0.0,
        log_dir=tmp_path / "logs",
        registry_dir=tmp_path / "pids",
        log_file=None,
    )


@pytest.fixture
def system() -> FakeSystem:
    return FakeSystem()


@pytest.fixture
def launcher(system: FakeSystem) -> FakeLauncher:
    return FakeLauncher(system)


@pytest.fixture
def browser() -> FakeBrowser:
    return FakeBrowser()


@pytest.fixture
def manager(settings: ManagerSettings, system: FakeSystem, launcher: FakeLauncher, browser: FakeBrowser) -> ServerManager:
    return ServerManager(
        settings,
        system=system,
        launcher=launcher,
        browser=browser,
        sleep=lambda _seconds: None,
    )
