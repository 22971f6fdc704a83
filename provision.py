#!/usr/bin/env python3
"""
Entry point for the PowerShell module provisioner.

Installs modules into the system module path or saves them to a directory,
taking the module list from the command line or from a manifest file.
"""

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from common.core_utils import level_from_name, setup_logging
from provisioner.backends import PowerShellGetClient
from provisioner.context import ExecutionContext
from provisioner.processor import BatchResult, ModuleProcessor
from settings.config_loader import load_app_settings

DEFAULT_REPOSITORY = "PSGallery"

# argparse dest -> manifest key, for flags that apply to --module entries
_MODULE_FLAG_KEYS = {
    "allow_prerelease": "AllowPreRelease",
    "accept_license": "AcceptLicense",
    "confirm": "Confirm",
    "force": "Force",
    "skip_publisher_check": "SkipPublisherCheck",
    "scope": "Scope",
    "path": "Path",
}


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        args: Command-line arguments. If None, sys.argv[1:] is used.

    Returns:
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(
        prog="provision",
        description="Install or save PowerShell modules from a repository",
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--config", default=None, help="Path to a YAML configuration file"
    )
    parser.add_argument("--log-file", default=None, help="Also log to this file")
    parser.add_argument(
        "--log-json", action="store_true", help="Emit log records as JSON"
    )
    parser.add_argument(
        "--pwsh",
        dest="pwsh_command",
        default=None,
        help="PowerShell executable (default: pwsh)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Timeout in seconds for each PowerShell call",
    )

    parser.add_argument(
        "action", help="Action to perform: Install or Save (case-insensitive)"
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--manifest", default=None, help="Path to a .json or .psd1 manifest"
    )
    source.add_argument(
        "--module",
        dest="modules",
        action="append",
        default=None,
        help="Module name (repeatable)",
    )

    module_opts = parser.add_argument_group("module options (with --module)")
    module_opts.add_argument(
        "--repository",
        default=DEFAULT_REPOSITORY,
        help=f"Repository to query (default: {DEFAULT_REPOSITORY})",
    )
    module_opts.add_argument(
        "--scope", default=None, help="CurrentUser or AllUsers (install only)"
    )
    module_opts.add_argument(
        "--allow-prerelease", action="store_const", const=True, default=None
    )
    module_opts.add_argument(
        "--accept-license", action="store_const", const=True, default=None
    )
    module_opts.add_argument(
        "--confirm", action="store_const", const=True, default=None
    )
    module_opts.add_argument(
        "--no-force",
        dest="force",
        action="store_const",
        const=False,
        default=None,
    )
    module_opts.add_argument(
        "--skip-publisher-check", action="store_const", const=True, default=None
    )
    module_opts.add_argument(
        "--path", default=None, help="Save directory for the module (save only)"
    )

    parser.add_argument(
        "--save-path",
        default=None,
        help="Root directory for saved modules (default: <temp>/Modules)",
    )
    parser.add_argument(
        "--on-installed",
        choices=["halt", "skip"],
        default=None,
        help="Install mode: what to do when a module is already installed",
    )
    parser.add_argument(
        "--skip-invalid",
        action="store_true",
        help="Skip modules missing Name or Repository instead of attempting them",
    )

    parsed = parser.parse_args(args)
    parsed.log_level = "DEBUG" if parsed.verbose else None
    return parsed


def build_cli_modules(
    parsed_args: argparse.Namespace,
) -> Optional[List[Dict[str, Any]]]:
    """Turn --module flags into manifest-shaped entries; None when none were given."""
    if not parsed_args.modules:
        return None

    entries = []
    for name in parsed_args.modules:
        entry: Dict[str, Any] = {
            "Name": name,
            "Repository": parsed_args.repository,
        }
        for dest, key in _MODULE_FLAG_KEYS.items():
            value = getattr(parsed_args, dest)
            if value is not None:
                entry[key] = value
        entries.append(entry)
    return entries


def log_summary(result: BatchResult, logger: logging.Logger) -> None:
    logger.info(
        f"Summary: {len(result.succeeded)} succeeded, {len(result.skipped)} skipped, "
        f"{len(result.failed)} failed, {len(result.errors)} error(s)"
    )
    if result.halted and result.halt_reason is not None:
        logger.info(f"Batch stopped early: {result.halt_reason.value}")


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the provisioner.

    Args:
        args: Command-line arguments. If None, sys.argv[1:] is used.

    Returns:
        Exit code (0 for success, 1 when any error was reported).
    """
    parsed_args = parse_args(args)

    app_settings = load_app_settings(parsed_args, parsed_args.config)

    setup_logging(
        log_level=level_from_name(app_settings.log_level),
        log_file=app_settings.log_file,
        log_prefix=app_settings.log_prefix,
        json_format=parsed_args.log_json,
        symbols=app_settings.symbols,
    )
    logger = logging.getLogger("provision")

    # The elevated relaunch replays this exact invocation.
    invocation = sys.argv if args is None else [sys.argv[0], *args]
    context = ExecutionContext.for_current_platform(
        app_settings, argv=invocation, logger=logger
    )
    client = PowerShellGetClient(app_settings, logger)
    processor = ModuleProcessor(client, context, app_settings, logger)

    result = processor.run(
        parsed_args.action,
        modules=build_cli_modules(parsed_args),
        manifest_path=parsed_args.manifest,
    )
    log_summary(result, logger)

    return 0 if result.ok else 1


if __name__ == "__main__":
    sys.exit(main())
