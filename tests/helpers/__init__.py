"""Test helpers for the servectl suite.

- fakes: in-memory ``SystemProbe``, ``ProcessLauncher`` and ``BrowserOpener``
"""
