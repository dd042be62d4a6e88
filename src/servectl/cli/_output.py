"""Unified CLI output formatting utilities.

Every command prints through ``OutputFormatter`` so ``--json`` stays
machine-readable: payloads go to stdout, errors to stderr.
"""
from __future__ import annotations

import json
import sys
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from servectl.core.exceptions import ServectlError


class OutputFormatter:
    """Unified output formatter for CLI commands."""

    def __init__(self, json_mode: bool = False, indent: int = 2):
        self.json_mode = json_mode
        self.indent = indent

    def success(
        self,
        data: Dict[str, Any],
        message: str,
        *,
        status: str = "success",
    ) -> None:
        """Print ``message``, or ``data`` plus a status field in JSON mode."""
        if self.json_mode:
            output = {"status": status, **data}
            print(json.dumps(output, indent=self.indent, default=str))
        else:
            print(message)

    def error(
        self,
        error: Exception,
        message: Optional[str] = None,
        *,
        error_code: str = "error",
    ) -> None:
        """Report ``error`` on stderr.

        In JSON mode a ``ServectlError`` is rendered with its own
        ``to_json_error()`` payload so callers get the retry context.
        """
        msg = message or str(error)
        if self.json_mode:
            if isinstance(error, ServectlError):
                output = {"error": error_code, **error.to_json_error()}
                if message:
                    output["message"] = message
            else:
                output = {"error": error_code, "message": msg}
            print(json.dumps(output, indent=self.indent, default=str), file=sys.stderr)
        else:
            print(f"Error: {msg}", file=sys.stderr)

    def json_output(self, data: Any) -> None:
        print(json.dumps(data, indent=self.indent, default=str))

    def text(self, message: str) -> None:
        print(message)

    def text_kv(self, key: str, value: Any, prefix: str = "  ") -> None:
        """Output key-value pair in text mode."""
        if not self.json_mode:
            print(f"{prefix}{key}: {value}")


def format_table(
    rows: Iterable[Sequence[Any] | Mapping[str, Any]],
    headers: Sequence[str],
    *,
    column_gap: int = 2,
) -> str:
    """Format rows as a plain-text table.

    Rows may be sequences or mappings keyed by header.
    """
    gap = " " * column_gap

    normalized_rows: List[List[str]] = []
    for row in rows:
        if isinstance(row, Mapping):
            normalized_rows.append([str(row.get(h, "")) for h in headers])
        else:
            normalized_rows.append([str(item) for item in row])

    widths: List[int] = []
    for idx, header in enumerate(headers):
        vals = [len(r[idx]) for r in normalized_rows] if normalized_rows else []
        widths.append(max([len(str(header)), *vals], default=len(str(header))))

    def _format_row(parts: List[str]) -> str:
        return gap.join(str(cell).ljust(widths[idx]) for idx, cell in enumerate(parts)).rstrip()

    lines: List[str] = [_format_row([str(h) for h in headers])]
    lines.extend(_format_row(row) for row in normalized_rows)
    return "\n".join(lines)


__all__ = ["OutputFormatter", "format_table"]
