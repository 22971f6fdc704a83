# provisioner/processor.py
# -*- coding: utf-8 -*-
"""
Per-module processing of a provisioning batch.

Modules are handled strictly in order. A failure on one module is reported
through the message sink and the next module is processed, except for the
conditions that halt the remaining batch: an Install-mode module that is
already present (under the default policy), a relaunch with elevation, and
an identity that cannot install for all users.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Union

from settings.config_models import AppSettings

from .backends import BaseRepositoryClient
from .context import ExecutionContext
from .elevation import ElevationOutcome, ensure_elevated
from .errors import (
    ErrorCategory,
    ErrorKind,
    ErrorRecord,
    ProvisioningError,
    RepositoryError,
    categorize,
)
from .manifest import ModuleInput, resolve_modules
from .models import Action, ModuleSpec, RunConfig, Scope


class HaltReason(str, Enum):
    BATCH_REJECTED = "BatchRejected"
    ALREADY_INSTALLED = "AlreadyInstalled"
    ELEVATION_REQUESTED = "ElevationRequested"
    ADMIN_PRIVILEGES_REQUIRED = "AdminPrivilegesRequired"


class _Step(Enum):
    CONTINUE = "continue"
    SKIPPED = "skipped"
    FAILED = "failed"
    HALT = "halt"


_HALT_REASON_BY_OUTCOME = {
    ElevationOutcome.RELAUNCHED: HaltReason.ELEVATION_REQUESTED,
    ElevationOutcome.DENIED: HaltReason.ADMIN_PRIVILEGES_REQUIRED,
}


@dataclass
class BatchResult:
    action: Optional[Action]
    succeeded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    errors: List[ErrorRecord] = field(default_factory=list)
    halted: bool = False
    halt_reason: Optional[HaltReason] = None

    @property
    def ok(self) -> bool:
        # A rejected batch and a denied elevation both record an error.
        return not self.errors


class ModuleProcessor:
    """
    Runs a batch of module entries against a repository client.

    Args:
        client: The backing install/save operations.
        context: Identity, relaunch capability and message sink for the run.
        app_settings: Defaults and policies; built from the environment if omitted.
    """

    def __init__(
        self,
        client: BaseRepositoryClient,
        context: ExecutionContext,
        app_settings: Optional[AppSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.context = context
        self.app_settings = app_settings or AppSettings()
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def sink(self):
        return self.context.sink

    def run(
        self,
        action: Union[Action, str],
        modules: Optional[Iterable[ModuleInput]] = None,
        manifest_path: Optional[Union[str, Path]] = None,
        save_path_root: Optional[Union[str, Path]] = None,
    ) -> BatchResult:
        """
        Validate the inputs and process every module.

        Batch-level problems (bad action, no input, unsupported or broken
        manifest) are reported and nothing is processed.
        """
        try:
            parsed_action = Action.parse(action)
            specs = resolve_modules(modules, manifest_path, self.logger)
        except ProvisioningError as e:
            self.sink.error(e.record)
            return BatchResult(
                action=None,
                errors=[e.record],
                halted=True,
                halt_reason=HaltReason.BATCH_REJECTED,
            )

        config = RunConfig(
            action=parsed_action,
            modules=tuple(specs),
            save_path_root=Path(save_path_root or self.app_settings.save_path_root),
        )
        return self.run_config(config)

    def run_config(self, config: RunConfig) -> BatchResult:
        result = BatchResult(action=config.action)
        total = len(config.modules)
        errors_before = len(self.sink.errors)

        self.sink.progress(
            f"{config.action.value}: processing {total} module(s)"
        )
        for index, spec in enumerate(config.modules, start=1):
            self.sink.progress(
                f"Processing module {index}/{total}: {spec}", target=spec
            )
            if config.action is Action.SAVE:
                step = self._process_save(spec, config)
            else:
                step, reason = self._process_install(spec)
                if step is _Step.HALT:
                    result.halted = True
                    result.halt_reason = reason
                    if reason is HaltReason.ALREADY_INSTALLED:
                        result.skipped.append(spec.name)
                    elif reason is HaltReason.ADMIN_PRIVILEGES_REQUIRED:
                        result.failed.append(spec.name)
                    break
            self._tally(result, spec, step)

        result.errors = self.sink.errors[errors_before:]
        if result.halted:
            self.logger.info(
                f"Batch halted ({result.halt_reason.value if result.halt_reason else 'unknown'})"
            )
        return result

    @staticmethod
    def _tally(result: BatchResult, spec: ModuleSpec, step: _Step) -> None:
        if step is _Step.CONTINUE:
            result.succeeded.append(spec.name)
        elif step is _Step.SKIPPED:
            result.skipped.append(spec.name)
        else:
            result.failed.append(spec.name)

    def _validate(self, spec: ModuleSpec) -> bool:
        """Report missing required keys. Returns False when the module should be skipped."""
        missing = spec.missing_keys()
        if not missing:
            return True
        self.sink.error(
            ErrorRecord(
                kind=ErrorKind.MISSING_MODULE_KEYS,
                category=ErrorCategory.INVALID_ARGUMENT,
                message=f"Module entry is missing required key(s): {', '.join(missing)}.",
                target=spec,
            )
        )
        return not self.app_settings.skip_invalid_modules

    def _report_backing_failure(
        self, spec: ModuleSpec, exc: Exception, operation: str
    ) -> None:
        if isinstance(exc, RepositoryError):
            category = categorize(exc.kind)
        else:
            category = ErrorCategory.NOT_SPECIFIED
        self.sink.error(
            ErrorRecord(
                kind=ErrorKind.MODULE_INSTALLATION_FAILED,
                category=category,
                message=f"Failed to {operation} module '{spec.name}': {exc}",
                exception=exc,
                target=spec,
            )
        )

    def _process_save(self, spec: ModuleSpec, config: RunConfig) -> _Step:
        target_dir = config.target_directory(spec)
        if target_dir.exists():
            self.sink.warning(
                f"Module '{spec.name}' already saved at {target_dir}; skipping.",
                target=spec,
            )
            return _Step.SKIPPED

        if not self._validate(spec):
            return _Step.SKIPPED

        options = spec.effective_options(self.app_settings.module_defaults)

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.sink.error(
                ErrorRecord(
                    kind=ErrorKind.DIRECTORY_CREATION_FAILED,
                    category=ErrorCategory.INVALID_OPERATION,
                    message=f"Could not create directory '{target_dir}' for module '{spec.name}': {e}",
                    exception=e,
                    target=str(target_dir),
                )
            )
            return _Step.FAILED

        try:
            self.client.save(spec.name, spec.repository, options, target_dir)
        except Exception as e:
            self._report_backing_failure(spec, e, "save")
            return _Step.FAILED

        self.sink.progress(f"Saved module '{spec.name}' to {target_dir}", target=spec)
        return _Step.CONTINUE

    def _process_install(self, spec: ModuleSpec):
        if not self._validate(spec):
            return _Step.SKIPPED, None

        try:
            installed = self.client.is_installed(spec.name)
        except Exception as e:
            self._report_backing_failure(spec, e, "check installation state of")
            return _Step.FAILED, None

        if installed:
            if self.app_settings.already_installed_policy == "halt":
                self.sink.warning(
                    f"Module '{spec.name}' is already installed; stopping the remaining batch.",
                    target=spec,
                )
                return _Step.HALT, HaltReason.ALREADY_INSTALLED
            self.sink.warning(
                f"Module '{spec.name}' is already installed; skipping.",
                target=spec,
            )
            return _Step.SKIPPED, None

        options = spec.effective_options(self.app_settings.module_defaults)

        if options.scope is Scope.ALL_USERS:
            outcome = ensure_elevated(spec, self.context)
            if outcome.halts_batch:
                return _Step.HALT, _HALT_REASON_BY_OUTCOME[outcome]
            if outcome is ElevationOutcome.RELAUNCH_FAILED:
                return _Step.FAILED, None

        try:
            self.client.install(spec.name, spec.repository, options)
        except Exception as e:
            self._report_backing_failure(spec, e, "install")
            return _Step.FAILED, None

        self.sink.progress(
            f"Installed module '{spec.name}' ({options.scope.value})", target=spec
        )
        return _Step.CONTINUE, None
