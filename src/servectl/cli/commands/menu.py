"""
servectl menu command.

SUMMARY: Interactive numbered menu (the default when no command is given)
"""

from __future__ import annotations

import argparse
import sys

from servectl.cli import OutputFormatter, add_config_flag, add_verbose_flag, build_manager
from servectl.cli._menu import InteractiveMenu
from servectl.core.exceptions import ServectlError

SUMMARY = "Interactive numbered menu (the default when no command is given)"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_config_flag(parser)
    add_verbose_flag(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=False)
    try:
        manager = build_manager(args)
    except ServectlError as e:
        formatter.error(e, error_code="menu_error")
        return 1
    return InteractiveMenu(manager, formatter).run()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
