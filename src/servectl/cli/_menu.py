"""Numbered interactive menu over ``ServerManager``.

Each entry prompts for its parameters and delegates to the same manager
operations the subcommands use. Errors are printed and the loop continues;
EOF on stdin or choice ``0`` exits.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Optional

from servectl.cli._output import OutputFormatter, format_table
from servectl.cli._prompts import InputFn, confirm, prompt_choice, prompt_int, prompt_text
from servectl.cli._utils import RULE, SERVER_HEADERS, announce_serving, describe_instance, server_rows
from servectl.core.exceptions import InvalidTargetError, ServectlError
from servectl.core.server import PortPreference, ServerManager, ServerSelector, StartMode

logger = logging.getLogger(__name__)

MENU_ITEMS = [
    ("1", "Start new server"),
    ("2", "Show running servers"),
    ("3", "Stop servers"),
    ("4", "Restart servers"),
    ("5", "View server logs"),
    ("6", "Open server in browser"),
    ("7", "Show statistics"),
    ("8", "Cleanup logs and records"),
    ("9", "Quick start (current dir, next free port)"),
    ("0", "Exit"),
]


class _MenuExit(Exception):
    pass


class InteractiveMenu:
    def __init__(
        self,
        manager: ServerManager,
        formatter: Optional[OutputFormatter] = None,
        *,
        input_fn: InputFn = input,
        cwd: Optional[Path] = None,
    ) -> None:
        self.manager = manager
        self.out = formatter or OutputFormatter()
        self.input_fn = input_fn
        self.cwd = cwd or Path.cwd()
        self._actions: Dict[str, Callable[[], None]] = {
            "1": self.start_server,
            "2": self.show_servers,
            "3": self.stop_servers,
            "4": self.restart_servers,
            "5": self.view_logs,
            "6": self.open_in_browser,
            "7": self.show_statistics,
            "8": self.cleanup,
            "9": self.quick_start,
        }

    def _ask(self, prompt: str) -> str:
        try:
            return self.input_fn(prompt).strip()
        except EOFError:
            raise _MenuExit() from None

    def show_menu(self) -> None:
        self.out.text("")
        self.out.text("Python HTTP Server Manager")
        self.out.text(RULE)
        for key, label in MENU_ITEMS:
            self.out.text(f"  {key}) {label}")
        self.out.text(RULE)

    def run(self) -> int:
        try:
            while True:
                self.show_menu()
                choice = self._ask("Enter your choice (0-9): ")
                if choice == "0":
                    break
                action = self._actions.get(choice)
                if action is None:
                    self.out.text("Invalid choice. Please try again.")
                    continue
                self._run_action(action)
                self._ask("Press Enter to continue...")
        except _MenuExit:
            self.out.text("")
        self.out.text("Goodbye!")
        return 0

    def _run_action(self, action: Callable[[], None]) -> None:
        try:
            action()
        except ServectlError as exc:
            logger.debug("Menu action failed: %s", exc)
            self.out.error(exc)
        except KeyboardInterrupt:
            self.out.text("\nStopped.")

    # ---------- actions ----------

    def _pick_directory(self) -> Optional[Path]:
        home = Path.home()
        choice = prompt_choice(
            "Where would you like to serve files from?",
            {
                "1": f"Current directory ({self.cwd})",
                "2": "Specify different directory",
                "3": f"Home directory ({home})",
                "4": f"Desktop ({home / 'Desktop'})",
            },
            input_fn=self.input_fn,
        )
        if choice == "2":
            raw = prompt_text("Enter directory path", input_fn=self.input_fn)
            return Path(raw).expanduser() if raw else None
        if choice == "3":
            return home
        if choice == "4":
            return home / "Desktop"
        return self.cwd

    def _pick_port(self) -> Optional[PortPreference]:
        default_port = self.manager.settings.default_port
        choice = prompt_choice(
            "What port would you like to use?",
            {
                "1": f"Default port ({default_port})",
                "2": f"Find next available port starting from {default_port}",
                "3": "Specify custom port",
                "4": "Random available port",
            },
            input_fn=self.input_fn,
        )
        if choice == "2":
            return PortPreference.auto()
        if choice == "3":
            port = prompt_int("Enter port number", input_fn=self.input_fn)
            if port is None:
                raise InvalidTargetError("Invalid port number")
            return PortPreference.explicit(port)
        if choice == "4":
            return PortPreference.random()
        return PortPreference.default()

    def start_server(self) -> None:
        directory = self._pick_directory()
        if directory is None:
            self.out.text("No directory given.")
            return
        preference = self._pick_port()
        choice = prompt_choice(
            "Additional server options:",
            {
                "1": "Start server normally",
                "2": "Start server and open in default browser",
                "3": "Start server in background with logging",
                "4": "Start server with custom bind address",
            },
            input_fn=self.input_fn,
        )
        bind: Optional[str] = None
        mode = StartMode.FOREGROUND
        if choice == "2":
            mode = StartMode.FOREGROUND_BROWSER
        elif choice == "3":
            mode = StartMode.BACKGROUND
        elif choice == "4":
            bind = prompt_text("Enter bind address", "localhost", input_fn=self.input_fn)

        instance = self.manager.start(
            directory,
            preference,
            bind,
            mode,
            on_started=None if mode.detached else lambda inst: announce_serving(self.out, inst),
        )
        if mode.detached:
            self.out.text(f"Server started in background with PID {instance.pid}")
            self.out.text(f"  URL: {instance.url}")
            self.out.text(f"  Log file: {instance.log_path}")

    def quick_start(self) -> None:
        self.manager.start(
            self.cwd,
            PortPreference.auto(),
            None,
            StartMode.FOREGROUND_BROWSER,
            on_started=lambda inst: announce_serving(self.out, inst),
        )

    def show_servers(self) -> bool:
        servers = self.manager.list_servers()
        if not servers:
            self.out.text("No running Python HTTP servers found.")
            return False
        self.out.text(format_table(server_rows(servers), SERVER_HEADERS))
        return True

    def _selector(self, kind: str) -> ServerSelector:
        value = prompt_int(f"Enter {kind}", input_fn=self.input_fn)
        if value is None:
            raise InvalidTargetError(f"Invalid {kind}")
        return ServerSelector.for_pid(value) if kind == "PID" else ServerSelector.for_port(value)

    def _target_choice(self, verb: str) -> str:
        return prompt_choice(
            f"How would you like to {verb.lower()}?",
            {
                "1": f"{verb} specific server by PID",
                "2": f"{verb} specific server by port",
                "3": f"{verb} all servers",
                "4": "Back to main menu",
            },
            input_fn=self.input_fn,
        )

    def stop_servers(self) -> None:
        if not self.show_servers():
            return
        choice = self._target_choice("Stop")
        if choice in ("1", "2"):
            stopped = self.manager.stop(self._selector("PID" if choice == "1" else "port"))
            self.out.text(f"Stopped server ({describe_instance(stopped)})")
        elif choice == "3":
            if not confirm("This will stop ALL Python HTTP servers! Are you sure?", input_fn=self.input_fn):
                self.out.text("Operation cancelled.")
                return
            stopped_all = self.manager.stop_all()
            self.out.text(f"Stopped {len(stopped_all)} server(s).")

    def restart_servers(self) -> None:
        if not self.show_servers():
            if confirm("No servers to restart. Start a new server?", input_fn=self.input_fn):
                self.start_server()
            return
        choice = self._target_choice("Restart")
        if choice in ("1", "2"):
            fresh = self.manager.restart(self._selector("PID" if choice == "1" else "port"))
            self.out.text(f"Server on port {fresh.port} restarted with new PID {fresh.pid}")
        elif choice == "3":
            if not confirm("This will restart ALL Python HTTP servers! Are you sure?", input_fn=self.input_fn):
                self.out.text("Operation cancelled.")
                return
            restarted, failures = self.manager.restart_all()
            for instance in restarted:
                self.out.text(f"Restarted port {instance.port} with new PID {instance.pid}")
            for instance, exc in failures:
                self.out.text(f"Could not restart PID {instance.pid}: {exc}")

    def view_logs(self) -> None:
        logs = self.manager.logs.list_logs()
        if not logs:
            self.out.text(f"No log files found in {self.manager.settings.log_dir}")
            return
        self.out.text("Available log files:")
        for idx, log in enumerate(logs, start=1):
            self.out.text(f"{idx}) {log.name} (Modified: {log.modified.astimezone():%Y-%m-%d %H:%M})")
        raw = self._ask("Enter log number to view (or 'q' to quit): ")
        if raw.lower() == "q":
            return
        if not raw.isdigit() or not 1 <= int(raw) <= len(logs):
            self.out.text("Invalid selection.")
            return
        selected = logs[int(raw) - 1]
        self.out.text(f"Viewing log: {selected.name}")
        self.out.text(RULE)
        for line in self.manager.logs.tail(selected.path, self.manager.settings.tail_lines):
            self.out.text(line)
        self.out.text(RULE)
        if self._ask("Press Enter to continue or 'f' to follow log: ").lower() == "f":
            try:
                for line in self.manager.logs.follow(selected.path):
                    print(line, flush=True)
            except KeyboardInterrupt:
                self.out.text("")

    def open_in_browser(self) -> None:
        if not self.show_servers():
            return
        port = prompt_int("Enter port number to open in browser", input_fn=self.input_fn)
        if port is None:
            raise InvalidTargetError("Invalid port number")
        url = self.manager.open_in_browser(port)
        self.out.text(f"Opened {url}")

    def show_statistics(self) -> None:
        stats = self.manager.stats()
        self.out.text("Server Statistics")
        self.out.text(RULE)
        self.out.text_kv("Running servers", f"{stats.running} ({stats.untracked} untracked)")
        self.out.text_kv("Registry records", f"{stats.tracked_records} ({stats.orphaned_records} orphaned)")
        self.out.text_kv("Log files", stats.log_files)
        self.out.text_kv("Log directory", stats.log_dir)
        self.out.text_kv("Registry directory", stats.registry_dir)

    def cleanup(self) -> None:
        days = self.manager.settings.log_retention_days
        choice = prompt_choice(
            "What would you like to clean up?",
            {
                "1": f"Remove old log files (older than {days} days)",
                "2": "Remove orphaned records",
                "3": "Clean up everything",
                "4": "Back to main menu",
            },
            input_fn=self.input_fn,
        )
        if choice == "1":
            removed = self.manager.prune_logs(days)
            self.out.text(f"Removed {len(removed)} old log file(s).")
        elif choice == "2":
            orphans = self.manager.reconcile()
            self.out.text(f"Removed {len(orphans)} orphaned record(s).")
        elif choice == "3":
            if not confirm("This will remove all logs and records! Are you sure?", input_fn=self.input_fn):
                self.out.text("Cleanup cancelled.")
                return
            records, logs = self.manager.purge_all()
            self.out.text(f"Removed {records} record(s) and {logs} log file(s).")


__all__ = ["InteractiveMenu", "MENU_ITEMS"]
