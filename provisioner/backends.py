# provisioner/backends.py
# -*- coding: utf-8 -*-
"""
Backing operations: the repository client that actually installs and
saves modules.

:class:`PowerShellGetClient` drives PowerShellGet's ``Install-Module`` and
``Save-Module`` through ``pwsh``. Failures are classified inside
PowerShell, where the .NET exception hierarchy is visible, and come back
as :class:`RepositoryError` with a closed :class:`RepositoryErrorKind`.
"""

import json
import logging
import re
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from common.command_utils import command_exists, run_command
from settings.config_models import AppSettings

from .errors import RepositoryError, RepositoryErrorKind
from .models import ModuleOptions

module_logger = logging.getLogger(__name__)

_COMMAND_PLACEHOLDER = "__PROVISION_COMMAND__"

# Runs one PowerShellGet command; on failure prints a JSON report to stderr.
_SCRIPT_TEMPLATE = """\
$ErrorActionPreference = 'Stop'
try {
    __PROVISION_COMMAND__
} catch {
    $ex = $_.Exception
    $kind = 'unknown'
    if ($ex -is [System.ArgumentException]) { $kind = 'invalid_argument' }
    elseif ($ex -is [System.UnauthorizedAccessException]) { $kind = 'permission_denied' }
    elseif ($ex -is [System.IO.IOException]) { $kind = 'write_error' }
    elseif ($ex -is [System.Security.SecurityException]) { $kind = 'security_error' }
    elseif ($ex -is [System.InvalidOperationException]) { $kind = 'invalid_operation' }
    elseif ($ex -is [System.Net.WebException] -or $ex.GetType().FullName -eq 'System.Net.Http.HttpRequestException') { $kind = 'connection_error' }
    $report = @{ kind = $kind; type = $ex.GetType().FullName; message = $ex.Message } | ConvertTo-Json -Compress
    [Console]::Error.WriteLine($report)
    exit 1
}
"""

_QUOTE_CHARS = re.compile("(['‘’‚‛])")


def ps_quote(value: object) -> str:
    """Quote ``value`` as a PowerShell single-quoted string literal."""
    return "'" + _QUOTE_CHARS.sub(r"\1\1", str(value)) + "'"


def ps_bool(value: bool) -> str:
    return "$true" if value else "$false"


class BaseRepositoryClient(ABC):
    """
    Interface for the opaque install/save primitives.

    Implementations raise :class:`RepositoryError` on failure.
    """

    def __init__(
        self,
        app_settings: Optional[AppSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.app_settings = app_settings or AppSettings()
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def is_installed(self, name: str) -> bool:
        """Return True if a module called ``name`` is present locally."""

    @abstractmethod
    def install(self, name: str, repository: str, options: ModuleOptions) -> None:
        """Install ``name`` from ``repository`` into the system module path."""

    @abstractmethod
    def save(
        self, name: str, repository: str, options: ModuleOptions, path: Path
    ) -> None:
        """Download ``name`` from ``repository`` into ``path``."""


class PowerShellGetClient(BaseRepositoryClient):
    """Repository client backed by PowerShellGet running in ``pwsh``."""

    def build_install_command(
        self, name: str, repository: str, options: ModuleOptions
    ) -> str:
        parts = [
            "Install-Module",
            "-Name", ps_quote(name),
            "-Repository", ps_quote(repository),
            "-Scope", options.scope.value,
        ]
        if options.allow_prerelease:
            parts.append("-AllowPrerelease")
        if options.accept_license:
            parts.append("-AcceptLicense")
        if options.skip_publisher_check:
            parts.append("-SkipPublisherCheck")
        if options.force:
            parts.append("-Force")
        parts.append(f"-Confirm:{ps_bool(options.confirm)}")
        return " ".join(parts)

    def build_save_command(
        self, name: str, repository: str, options: ModuleOptions, path: Path
    ) -> str:
        parts = [
            "Save-Module",
            "-Name", ps_quote(name),
            "-Repository", ps_quote(repository),
            "-Path", ps_quote(path),
        ]
        if options.allow_prerelease:
            parts.append("-AllowPrerelease")
        if options.accept_license:
            parts.append("-AcceptLicense")
        if options.force:
            parts.append("-Force")
        parts.append(f"-Confirm:{ps_bool(options.confirm)}")
        return " ".join(parts)

    def _argv(self, command: str, interactive: bool = False) -> List[str]:
        argv = [self.app_settings.pwsh_command, "-NoLogo", "-NoProfile"]
        if not interactive:
            argv.append("-NonInteractive")
        argv += ["-Command", _SCRIPT_TEMPLATE.replace(_COMMAND_PLACEHOLDER, command)]
        return argv

    @staticmethod
    def _error_from_stderr(stderr: Optional[str], returncode: int) -> RepositoryError:
        lines = [line for line in (stderr or "").splitlines() if line.strip()]
        for line in reversed(lines):
            try:
                report = json.loads(line)
            except ValueError:
                continue
            if isinstance(report, dict):
                return RepositoryError(
                    RepositoryErrorKind.parse(report.get("kind")),
                    str(report.get("message") or "PowerShell command failed"),
                    native_type=report.get("type"),
                )
        detail = lines[-1] if lines else f"exit code {returncode}"
        return RepositoryError(
            RepositoryErrorKind.UNKNOWN, f"PowerShell command failed: {detail}"
        )

    def _invoke(
        self, command: str, interactive: bool = False
    ) -> subprocess.CompletedProcess:
        if not command_exists(self.app_settings.pwsh_command):
            raise RepositoryError(
                RepositoryErrorKind.INVALID_OPERATION,
                f"PowerShell executable '{self.app_settings.pwsh_command}' was not found",
            )
        try:
            return run_command(
                self._argv(command, interactive),
                self.app_settings,
                check=True,
                capture_output=not interactive,
                current_logger=self.logger,
                timeout=self.app_settings.command_timeout_seconds,
            )
        except subprocess.CalledProcessError as e:
            raise self._error_from_stderr(e.stderr, e.returncode) from e
        except subprocess.TimeoutExpired as e:
            raise RepositoryError(
                RepositoryErrorKind.CONNECTION_ERROR,
                f"PowerShell command timed out after {e.timeout}s",
            ) from e
        except FileNotFoundError as e:
            raise RepositoryError(
                RepositoryErrorKind.INVALID_OPERATION,
                f"PowerShell executable '{self.app_settings.pwsh_command}' was not found",
            ) from e
        except PermissionError as e:
            raise RepositoryError(
                RepositoryErrorKind.PERMISSION_DENIED,
                f"Could not start '{self.app_settings.pwsh_command}': {e}",
            ) from e
        except OSError as e:
            raise RepositoryError(
                RepositoryErrorKind.UNKNOWN,
                f"Could not start '{self.app_settings.pwsh_command}': {e}",
            ) from e

    def is_installed(self, name: str) -> bool:
        command = (
            f"if (Get-Module -ListAvailable -Name {ps_quote(name)}) "
            "{ 'True' } else { 'False' }"
        )
        result = self._invoke(command)
        return (result.stdout or "").strip().splitlines()[-1:] == ["True"]

    def install(self, name: str, repository: str, options: ModuleOptions) -> None:
        self.logger.info(f"Installing module '{name}' from '{repository}' ({options.scope.value})")
        # A confirmation prompt needs the console.
        self._invoke(
            self.build_install_command(name, repository, options),
            interactive=options.confirm,
        )

    def save(
        self, name: str, repository: str, options: ModuleOptions, path: Path
    ) -> None:
        self.logger.info(f"Saving module '{name}' from '{repository}' to {path}")
        self._invoke(
            self.build_save_command(name, repository, options, path),
            interactive=options.confirm,
        )
