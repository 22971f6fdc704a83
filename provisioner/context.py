# provisioner/context.py
# -*- coding: utf-8 -*-
"""
Explicit execution context handed to every provisioning step.
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from settings.config_models import AppSettings

from .elevation import (
    IdentityInspector,
    PosixIdentity,
    ProcessRelauncher,
    RunAsRelauncher,
    SudoRelauncher,
    WindowsIdentity,
)
from .messages import MessageSink


@dataclass
class ExecutionContext:
    """Process identity, relaunch capability and message sink for one run."""

    identity: IdentityInspector
    relauncher: ProcessRelauncher
    sink: MessageSink
    argv: List[str] = field(default_factory=list)

    @classmethod
    def for_current_platform(
        cls,
        app_settings: Optional[AppSettings] = None,
        argv: Optional[Sequence[str]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "ExecutionContext":
        """Build the context for this process, choosing Windows or POSIX helpers."""
        settings = app_settings or AppSettings()
        identity: IdentityInspector
        relauncher: ProcessRelauncher
        if sys.platform == "win32":
            identity = WindowsIdentity(settings)
            relauncher = RunAsRelauncher()
        else:
            identity = PosixIdentity(settings.admin_groups)
            relauncher = SudoRelauncher(settings, logger)
        return cls(
            identity=identity,
            relauncher=relauncher,
            sink=MessageSink(logger, settings.symbols),
            argv=list(sys.argv if argv is None else argv),
        )
