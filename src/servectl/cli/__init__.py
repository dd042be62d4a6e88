"""
servectl CLI package.

Commands live in ``commands/`` and are auto-discovered by the dispatcher.

Framework utilities for building CLI commands:
- _output: Output formatting (JSON/text modes)
- _args: Common argument registration helpers
- _prompts: Interactive prompts
- _utils: Manager construction and shared rendering
"""
from ._output import OutputFormatter, format_table
from ._args import (
    add_json_flag,
    add_config_flag,
    add_verbose_flag,
    add_force_flag,
    add_target_args,
    add_standard_flags,
)
from ._prompts import confirm, prompt_choice, prompt_int, prompt_text
from ._utils import (
    RULE,
    SERVER_HEADERS,
    announce_serving,
    build_manager,
    describe_instance,
    load_settings,
    selector_from_args,
    server_rows,
)

__all__ = [
    # Output formatting
    "OutputFormatter",
    "format_table",
    # Argument helpers
    "add_json_flag",
    "add_config_flag",
    "add_verbose_flag",
    "add_force_flag",
    "add_target_args",
    "add_standard_flags",
    # Prompts
    "confirm",
    "prompt_choice",
    "prompt_int",
    "prompt_text",
    # Utilities
    "RULE",
    "SERVER_HEADERS",
    "announce_serving",
    "build_manager",
    "describe_instance",
    "load_settings",
    "selector_from_args",
    "server_rows",
]
