# settings/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for application configuration.

This module defines the structured settings for the provisioner,
including defaults, type annotations, and descriptions.
It utilizes Pydantic for data validation and settings management.
"""

import tempfile
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by config file/env/cli) ---
PWSH_COMMAND_DEFAULT: str = "pwsh"
SAVE_PATH_ROOT_DEFAULT: Path = Path(tempfile.gettempdir()) / "Modules"
LOG_PREFIX_DEFAULT: str = "[PS-PROVISION]"
SETTINGS_ENV_PREFIX: str = "PSPROVISION_"
ADMIN_GROUPS_DEFAULT: List[str] = ["sudo", "wheel", "admin"]

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
    "lock": "🔒",
}


class ModuleDefaults(BaseModel):
    """Defaults applied to every module where the module leaves a field unset."""

    allow_prerelease: bool = Field(default=False, description="Allow pre-release versions.")
    accept_license: bool = Field(default=False, description="Accept license agreements automatically.")
    confirm: bool = Field(default=False, description="Prompt for confirmation before acting.")
    force: bool = Field(default=True, description="Overwrite or ignore existing state.")
    skip_publisher_check: bool = Field(default=False,
                                       description="Skip the publisher check (install only).")
    scope: Literal["CurrentUser", "AllUsers"] = Field(default="CurrentUser",
                                                      description="Installation scope (install only).")


class AppSettings(BaseSettings):
    """Main application settings."""
    model_config = SettingsConfigDict(env_prefix=SETTINGS_ENV_PREFIX, extra="ignore")

    pwsh_command: str = Field(default=PWSH_COMMAND_DEFAULT,
                              description="PowerShell executable hosting PowerShellGet (pwsh or powershell).")
    save_path_root: Path = Field(default=SAVE_PATH_ROOT_DEFAULT,
                                 description="Default root directory for saved modules.")
    already_installed_policy: Literal["halt", "skip"] = Field(
        default="halt",
        description="What to do when an Install-mode module is already present: "
                    "'halt' stops the remaining batch, 'skip' moves on to the next module.")
    skip_invalid_modules: bool = Field(
        default=False,
        description="Skip modules missing Name or Repository instead of reporting and attempting them anyway.")
    admin_groups: List[str] = Field(default_factory=lambda: list(ADMIN_GROUPS_DEFAULT),
                                    description="POSIX groups whose members may elevate via sudo.")
    command_timeout_seconds: Optional[float] = Field(default=None,
                                                     description="Timeout for each pwsh invocation.")
    log_level: str = Field(default="INFO", description="Logging level name.")
    log_file: Optional[str] = Field(default=None, description="Optional log file path.")
    log_prefix: str = Field(default=LOG_PREFIX_DEFAULT, description="Prefix for console log lines.")

    module_defaults: ModuleDefaults = Field(default_factory=ModuleDefaults)

    symbols: Dict[str, str] = Field(default_factory=lambda: dict(SYMBOLS_DEFAULT))
