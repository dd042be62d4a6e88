"""OS capabilities: process/port inspection, launching, browser opening."""

from .browser import BrowserOpener, WebBrowserOpener, schedule_open
from .inspector import (
    ProcessInfo,
    PsutilSystemProbe,
    SystemProbe,
    is_process_alive,
    process_cwd,
)
from .launcher import LaunchedProcess, ProcessLauncher, SubprocessLauncher

__all__ = [
    "BrowserOpener",
    "WebBrowserOpener",
    "schedule_open",
    "ProcessInfo",
    "PsutilSystemProbe",
    "SystemProbe",
    "is_process_alive",
    "process_cwd",
    "LaunchedProcess",
    "ProcessLauncher",
    "SubprocessLauncher",
]
