# provisioner/models.py
# -*- coding: utf-8 -*-
"""
Data model for a provisioning run.

ModuleSpec mirrors one manifest entry. Its optional fields stay ``None``
when the manifest leaves them out so that defaults are applied only on
absence, never on an explicit ``false``.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from settings.config_models import ModuleDefaults

from .errors import ErrorKind, ProvisioningError


class Scope(str, Enum):
    CURRENT_USER = "CurrentUser"
    ALL_USERS = "AllUsers"

    @classmethod
    def parse(cls, value: Any) -> "Scope":
        if isinstance(value, cls):
            return value
        for member in cls:
            if str(value).strip().lower() == member.value.lower():
                return member
        raise ValueError(
            f"Scope must be one of {', '.join(m.value for m in cls)}, got '{value}'"
        )


class Action(str, Enum):
    INSTALL = "Install"
    SAVE = "Save"

    @classmethod
    def parse(cls, value: Any) -> "Action":
        """Normalize an action name case-insensitively.

        Raises:
            ProvisioningError: InvalidAction for anything but Install or Save.
        """
        if isinstance(value, cls):
            return value
        if value is not None:
            for member in cls:
                if str(value).strip().lower() == member.value.lower():
                    return member
        raise ProvisioningError.invalid_argument(
            ErrorKind.INVALID_ACTION,
            f"Invalid action '{value}'. Valid actions are: Install, Save.",
            target=value,
        )


class ModuleSpec(BaseModel):
    """One module to provision, as written in a manifest."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    name: str = Field(default="", alias="Name")
    repository: str = Field(default="", alias="Repository")
    allow_prerelease: Optional[bool] = Field(default=None, alias="AllowPreRelease")
    accept_license: Optional[bool] = Field(default=None, alias="AcceptLicense")
    confirm: Optional[bool] = Field(default=None, alias="Confirm")
    force: Optional[bool] = Field(default=None, alias="Force")
    skip_publisher_check: Optional[bool] = Field(default=None, alias="SkipPublisherCheck")
    scope: Optional[Scope] = Field(default=None, alias="Scope")
    path: Optional[str] = Field(default=None, alias="Path")

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        # Manifest keys are matched case-insensitively, as PowerShell does.
        if not isinstance(data, dict):
            return data
        known: Dict[str, str] = {}
        for field_name, field_info in cls.model_fields.items():
            known[field_name.lower()] = field_info.alias or field_name
            if field_info.alias:
                known[field_info.alias.lower()] = field_info.alias
        normalized: Dict[str, Any] = {}
        for key, value in data.items():
            normalized[known.get(str(key).lower(), key)] = value
        return normalized

    @field_validator("name", "repository", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("scope", mode="before")
    @classmethod
    def _parse_scope(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return Scope.parse(value)

    @field_validator("path", mode="before")
    @classmethod
    def _path_to_str(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return str(value)

    def missing_keys(self) -> Tuple[str, ...]:
        """Names of required keys that are empty."""
        missing = []
        if not self.name.strip():
            missing.append("Name")
        if not self.repository.strip():
            missing.append("Repository")
        return tuple(missing)

    def effective_options(self, defaults: ModuleDefaults) -> "ModuleOptions":
        """Merge the fields this module sets over ``defaults``."""
        merged = defaults.model_dump()
        merged.update(
            self.model_dump(
                include=set(merged), exclude_none=True
            )
        )
        return ModuleOptions(
            allow_prerelease=bool(merged["allow_prerelease"]),
            accept_license=bool(merged["accept_license"]),
            confirm=bool(merged["confirm"]),
            force=bool(merged["force"]),
            skip_publisher_check=bool(merged["skip_publisher_check"]),
            scope=Scope.parse(merged["scope"]),
            path=self.path,
        )

    def __str__(self) -> str:
        return self.name or "<unnamed>"


@dataclass(frozen=True)
class ModuleOptions:
    """Effective option set handed to a backing operation."""

    allow_prerelease: bool
    accept_license: bool
    confirm: bool
    force: bool
    skip_publisher_check: bool
    scope: Scope
    path: Optional[str] = None


@dataclass(frozen=True)
class RunConfig:
    action: Action
    modules: Tuple[ModuleSpec, ...]
    save_path_root: Path

    def target_directory(self, spec: ModuleSpec) -> Path:
        """Where ``spec`` is saved: its own Path, or <save root>/<Name>."""
        if spec.path:
            return Path(spec.path)
        return self.save_path_root / spec.name
