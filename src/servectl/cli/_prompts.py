"""Interactive prompt helpers shared by confirmations and the menu."""
from __future__ import annotations

from typing import Callable, Optional

InputFn = Callable[[str], str]


def _read(prompt: str, input_fn: InputFn) -> str:
    try:
        return input_fn(prompt).strip()
    except EOFError:
        return ""


def confirm(message: str, default: bool = False, *, input_fn: InputFn = input) -> bool:
    """Ask a yes/no question; Enter (or EOF) picks ``default``."""
    suffix = "[Y/n]" if default else "[y/N]"
    resp = _read(f"{message} {suffix} ", input_fn).lower()
    if resp in ("y", "yes"):
        return True
    if resp in ("n", "no"):
        return False
    return default


def prompt_text(message: str, default: str = "", *, input_fn: InputFn = input) -> str:
    shown = f"{message} [{default}]: " if default else f"{message}: "
    return _read(shown, input_fn) or default


def prompt_int(message: str, default: Optional[int] = None, *, input_fn: InputFn = input) -> Optional[int]:
    """Read an integer; returns ``default`` for empty input and None for garbage."""
    raw = prompt_text(message, "" if default is None else str(default), input_fn=input_fn)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return None


def prompt_choice(message: str, options: dict[str, str], *, input_fn: InputFn = input) -> str:
    """Print numbered ``options`` and return the chosen key (empty when invalid)."""
    print(message)
    for key, label in options.items():
        print(f"{key}) {label}")
    choice = _read(f"Enter your choice ({'/'.join(options)}): ", input_fn)
    return choice if choice in options else ""


__all__ = ["confirm", "prompt_text", "prompt_int", "prompt_choice", "InputFn"]
