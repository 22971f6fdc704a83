# provisioner/messages.py
# -*- coding: utf-8 -*-
"""
Structured message stream.

Every outcome of a run is reported here rather than returned or raised.
The sink keeps the messages in order and forwards each one to a logger.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from common.command_utils import log_message
from settings.config_models import SYMBOLS_DEFAULT

from .errors import ErrorRecord


class Severity(str, Enum):
    DEBUG = "Debug"
    WARNING = "Warning"
    ERROR = "Error"
    PROGRESS = "Progress"


@dataclass(frozen=True)
class Message:
    severity: Severity
    text: str
    target: Any = None
    record: Optional[ErrorRecord] = None


class MessageSink:
    """Collects messages and mirrors them to ``logging``."""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        symbols: Optional[Dict[str, str]] = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.symbols = symbols or SYMBOLS_DEFAULT
        self.messages: List[Message] = []

    def debug(self, text: str, target: Any = None) -> None:
        self.messages.append(Message(Severity.DEBUG, text, target))
        log_message(text, "debug", self.logger)

    def warning(self, text: str, target: Any = None) -> None:
        self.messages.append(Message(Severity.WARNING, text, target))
        log_message(
            f"{self.symbols.get('warning', '!')} {text}", "warning", self.logger
        )

    def progress(self, text: str, target: Any = None) -> None:
        self.messages.append(Message(Severity.PROGRESS, text, target))
        log_message(
            f"{self.symbols.get('step', '->')} {text}", "info", self.logger
        )

    def error(self, record: ErrorRecord) -> None:
        self.messages.append(
            Message(Severity.ERROR, record.message, record.target, record)
        )
        log_message(
            f"{self.symbols.get('error', '❌')} [{record.kind.value}/{record.category.value}] {record.message}",
            "error",
            self.logger,
            exc_info=(
                record.exception
                if record.exception is not None
                and self.logger.isEnabledFor(logging.DEBUG)
                else False
            ),
            extra=record.as_log_extra(),
        )

    @property
    def errors(self) -> List[ErrorRecord]:
        return [m.record for m in self.messages if m.record is not None]

    def of_severity(self, severity: Severity) -> List[Message]:
        return [m for m in self.messages if m.severity == severity]
