# common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for executing shell commands and logging their output.
"""

import logging
import os
import shutil
import subprocess
from typing import Dict, List, Optional, Union

from settings.config_models import SYMBOLS_DEFAULT, AppSettings

module_logger = logging.getLogger(__name__)


def _symbols_for(app_settings: Optional[AppSettings]) -> Dict[str, str]:
    return (
        app_settings.symbols
        if app_settings and app_settings.symbols
        else SYMBOLS_DEFAULT
    )


def log_message(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    exc_info: Union[bool, BaseException] = False,
    extra: Optional[Dict[str, object]] = None,
) -> None:
    """
    Logs a message at a named level.

    Args:
        message (str): The log message to be recorded.
        level (str): The severity level of the log message. Defaults to "info". Common options
            include "debug", "info", "warning", "error", and "critical". Unknown levels log at info.
        current_logger (Optional[logging.Logger]): A logger instance to use for logging. If not provided,
            a module-level logger will be used.
        exc_info (Union[bool, BaseException]): Exception information to attach to the record.
        extra (Optional[Dict[str, object]]): Extra attributes attached to the log record.
    """
    effective_logger = current_logger if current_logger else module_logger

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info, extra=extra)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info, extra=extra)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info, extra=extra)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info, extra=extra)
    else:
        effective_logger.info(message, exc_info=exc_info, extra=extra)


def _get_elevated_command_prefix() -> List[str]:
    """
    Return ``["sudo"]`` unless the process already runs with an effective
    user id of 0.
    """
    return [] if os.geteuid() == 0 else ["sudo"]


def run_command(
    command: Union[List[str], str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    capture_output: bool = False,
    text: bool = True,
    cmd_input: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a system command and logs the process details and results.

    Args:
        command (Union[List[str], str]): The command to execute. A string is split on
            whitespace, a list is passed through unchanged.
        app_settings (Optional[AppSettings]): Settings providing the logging symbols.
        check (bool): Raise CalledProcessError on a non-zero exit code. Defaults to True.
        capture_output (bool): Capture stdout and stderr. Defaults to False.
        text (bool): Decode output streams as text. Defaults to True.
        cmd_input (Optional[str]): Data passed to the command's standard input.
        current_logger (Optional[logging.Logger]): Logger to use for details.
        cwd (Optional[str]): Working directory for the command.
        env (Optional[Dict[str, str]]): Environment for the command.
        timeout (Optional[float]): Seconds before the command is killed.

    Returns:
        subprocess.CompletedProcess: The completed process instance.

    Raises:
        subprocess.CalledProcessError: Non-zero exit code with check=True.
        subprocess.TimeoutExpired: The command outlived ``timeout``.
        FileNotFoundError: The executable is not on PATH.
    """
    effective_logger = current_logger if current_logger else module_logger
    symbols = _symbols_for(app_settings)

    if isinstance(command, str):
        log_message(
            f"{symbols.get('warning', '!')} Running string command '{command}'. Consider list format.",
            "warning",
            effective_logger,
        )
        command_to_run = command.split()
        command_to_log_str = command
    else:
        command_to_run = list(command)
        command_to_log_str = subprocess.list2cmdline(command_to_run)

    log_message(
        f"{symbols.get('gear', '⚙️')} Executing: {command_to_log_str} {f'(in {cwd})' if cwd else ''}",
        "debug",
        effective_logger,
    )
    try:
        result = subprocess.run(
            command_to_run,
            check=check,
            capture_output=capture_output,
            text=text,
            input=cmd_input,
            cwd=cwd,
            env=env,
            timeout=timeout,
        )
        if capture_output:
            if result.stdout and result.stdout.strip():
                log_message(
                    f"   stdout: {result.stdout.strip()}",
                    "debug",
                    effective_logger,
                )
            if result.stderr and result.stderr.strip():
                log_message(
                    f"   stderr: {result.stderr.strip()}",
                    "debug",
                    effective_logger,
                )
        return result
    except subprocess.CalledProcessError as e:
        log_message(
            f"{symbols.get('error', '❌')} Command `{command_to_log_str}` failed (rc {e.returncode}).",
            "error",
            effective_logger,
        )
        if e.stderr and hasattr(e.stderr, "strip") and e.stderr.strip():
            log_message(
                f"   stderr: {e.stderr.strip()}",
                "error",
                effective_logger,
            )
        raise
    except subprocess.TimeoutExpired as e:
        log_message(
            f"{symbols.get('error', '❌')} Command `{command_to_log_str}` timed out after {e.timeout}s.",
            "error",
            effective_logger,
        )
        raise
    except FileNotFoundError as e:
        log_message(
            f"{symbols.get('error', '❌')} Command not found: {e.filename}. Ensure it's installed and in PATH.",
            "error",
            effective_logger,
        )
        raise


def run_elevated_command(
    command: List[str],
    app_settings: Optional[AppSettings],
    check: bool = True,
    capture_output: bool = False,
    current_logger: Optional[logging.Logger] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Executes a command with elevated permissions, prefixing ``sudo`` when the
    process is not already root.

    Returns:
        subprocess.CompletedProcess: The result of the command execution.

    Raises:
        subprocess.CalledProcessError: check is True and the command failed.
    """
    elevated_command_list = _get_elevated_command_prefix() + list(command)
    return run_command(
        elevated_command_list,
        app_settings,
        check=check,
        capture_output=capture_output,
        text=True,
        current_logger=current_logger,
        cwd=cwd,
        env=env,
    )


def command_exists(command_name: str) -> bool:
    """Check if a command exists in the system's PATH."""
    return shutil.which(command_name) is not None
