# provisioner/elevation.py
# -*- coding: utf-8 -*-
"""
Privilege escalation for all-users installs.

Identity inspection and process relaunch are behind small protocols so
the decision logic in :func:`ensure_elevated` never touches the real
process state directly.
"""

import logging
import os
import subprocess
import sys
from enum import Enum
from typing import TYPE_CHECKING, Iterable, List, Optional, Protocol, Sequence

from common.command_utils import log_message, run_command, run_elevated_command
from settings.config_models import (
    ADMIN_GROUPS_DEFAULT,
    SETTINGS_ENV_PREFIX,
    AppSettings,
)

from .errors import ErrorCategory, ErrorKind, ErrorRecord
from .models import ModuleSpec

if TYPE_CHECKING:
    from .context import ExecutionContext

module_logger = logging.getLogger(__name__)

ADMINISTRATORS_SID = "S-1-5-32-544"


class ElevationOutcome(str, Enum):
    PROCEED = "proceed"
    RELAUNCHED = "relaunched"
    RELAUNCH_FAILED = "relaunch_failed"
    DENIED = "denied"

    @property
    def halts_batch(self) -> bool:
        return self in (ElevationOutcome.RELAUNCHED, ElevationOutcome.DENIED)


class IdentityInspector(Protocol):
    def is_elevated(self) -> bool:
        ...

    def is_admin_eligible(self) -> bool:
        ...


class ProcessRelauncher(Protocol):
    def relaunch(self, argv: Sequence[str]) -> None:
        ...


class PosixIdentity:
    """Root means elevated; membership of an admin group means sudo is available."""

    def __init__(self, admin_groups: Optional[Iterable[str]] = None):
        self.admin_groups = list(admin_groups or ADMIN_GROUPS_DEFAULT)

    def is_elevated(self) -> bool:
        return os.geteuid() == 0

    def _group_names(self) -> List[str]:
        import grp

        names = []
        for gid in os.getgroups():
            try:
                names.append(grp.getgrgid(gid).gr_name)
            except KeyError:
                continue
        return names

    def is_admin_eligible(self) -> bool:
        return bool(set(self._group_names()) & set(self.admin_groups))


class WindowsIdentity:
    """Elevation via the shell32 token check; eligibility via the Administrators SID."""

    def __init__(self, app_settings: Optional[AppSettings] = None):
        self.app_settings = app_settings

    def is_elevated(self) -> bool:
        import ctypes

        try:
            return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
        except (AttributeError, OSError):
            return False

    def is_admin_eligible(self) -> bool:
        # A filtered (non-elevated) token still lists the SID as deny-only.
        try:
            result = run_command(
                ["whoami", "/groups"],
                self.app_settings,
                check=False,
                capture_output=True,
            )
        except OSError:
            return False
        return result.returncode == 0 and ADMINISTRATORS_SID in (
            result.stdout or ""
        )


class SudoRelauncher:
    """
    Re-run the invocation under sudo and wait for it to finish.

    sudo resets the environment, so ``PSPROVISION_*`` variables are passed
    through ``env`` to keep the elevated run on the same settings.

    Raises:
        OSError: sudo could not be started, or the elevated run failed.
    """

    def __init__(
        self,
        app_settings: Optional[AppSettings] = None,
        current_logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings
        self.logger = current_logger or module_logger

    @staticmethod
    def _forwarded_environment() -> List[str]:
        return sorted(
            f"{key}={value}"
            for key, value in os.environ.items()
            if key.upper().startswith(SETTINGS_ENV_PREFIX)
        )

    def build_command(self, argv: Sequence[str]) -> List[str]:
        forwarded = self._forwarded_environment()
        prefix = ["env", *forwarded] if forwarded else []
        return [*prefix, sys.executable, *argv]

    def relaunch(self, argv: Sequence[str]) -> None:
        result = run_elevated_command(
            self.build_command(argv),
            self.app_settings,
            check=False,
            current_logger=self.logger,
        )
        if result.returncode != 0:
            raise OSError(f"elevated run exited with code {result.returncode}")
        log_message("Elevated run completed.", "info", self.logger)


class RunAsRelauncher:
    """Ask Windows to start the invocation again with the 'runas' verb."""

    def relaunch(self, argv: Sequence[str]) -> None:
        import ctypes

        params = subprocess.list2cmdline(list(argv))
        rc = ctypes.windll.shell32.ShellExecuteW(  # type: ignore[attr-defined]
            None, "runas", sys.executable, params, None, 1
        )
        # ShellExecuteW reports failure with values <= 32.
        if rc <= 32:
            raise OSError(f"ShellExecuteW runas failed with code {rc}")


def ensure_elevated(
    spec: ModuleSpec, context: "ExecutionContext"
) -> ElevationOutcome:
    """
    Decide whether an all-users install of ``spec`` may go ahead.

    Returns:
        PROCEED when already elevated; RELAUNCHED after handing the run to an
        elevated copy of this process; RELAUNCH_FAILED when that hand-off
        raised; DENIED when this identity cannot elevate at all.
    """
    sink = context.sink

    if context.identity.is_elevated():
        sink.debug(
            f"Process is elevated; installing '{spec.name}' for all users.",
            target=spec,
        )
        return ElevationOutcome.PROCEED

    if context.identity.is_admin_eligible():
        sink.progress(
            f"Installing '{spec.name}' for all users requires elevation; relaunching with elevated rights.",
            target=spec,
        )
        try:
            context.relauncher.relaunch(context.argv)
        except Exception as e:
            sink.error(
                ErrorRecord(
                    kind=ErrorKind.ELEVATION_FAILED,
                    category=ErrorCategory.SECURITY_ERROR,
                    message=f"Failed to relaunch with elevated rights for module '{spec.name}': {e}",
                    exception=e,
                    target=spec,
                )
            )
            return ElevationOutcome.RELAUNCH_FAILED
        sink.progress(
            "Elevated process requested; remaining modules are handled by the elevated run.",
            target=spec,
        )
        return ElevationOutcome.RELAUNCHED

    sink.error(
        ErrorRecord(
            kind=ErrorKind.ADMIN_PRIVILEGES_REQUIRED,
            category=ErrorCategory.PERMISSION_DENIED,
            message=f"Administrator privileges are required to install '{spec.name}' for all users.",
            target=spec,
        )
    )
    return ElevationOutcome.DENIED
