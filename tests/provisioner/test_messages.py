# tests/provisioner/test_messages.py
import logging
from unittest.mock import MagicMock

from provisioner.errors import ErrorCategory, ErrorKind, ErrorRecord
from provisioner.messages import MessageSink, Severity


def _record(exception=None):
    return ErrorRecord(
        kind=ErrorKind.DIRECTORY_CREATION_FAILED,
        category=ErrorCategory.WRITE_ERROR,
        message="Could not create directory",
        exception=exception,
        target="Foo",
    )


def test_messages_keep_emission_order():
    sink = MessageSink(MagicMock(spec=logging.Logger))

    sink.progress("one")
    sink.debug("two")
    sink.warning("three")
    sink.error(_record())

    assert [m.severity for m in sink.messages] == [
        Severity.PROGRESS,
        Severity.DEBUG,
        Severity.WARNING,
        Severity.ERROR,
    ]
    assert [m.text for m in sink.of_severity(Severity.PROGRESS)] == ["one"]
    assert [r.kind for r in sink.errors] == [ErrorKind.DIRECTORY_CREATION_FAILED]


def test_progress_and_warning_use_symbols():
    logger = MagicMock(spec=logging.Logger)
    sink = MessageSink(logger, symbols={"step": ">>", "warning": "!!"})

    sink.progress("saving Foo")
    sink.warning("skipping Bar")

    logger.info.assert_called_once_with(">> saving Foo", exc_info=False, extra=None)
    logger.warning.assert_called_once_with("!! skipping Bar", exc_info=False, extra=None)


def test_error_logs_classification_and_extra(caplog):
    logger = logging.getLogger("test_messages.error")
    sink = MessageSink(logger)

    with caplog.at_level(logging.ERROR, logger="test_messages.error"):
        sink.error(_record())

    (log_record,) = caplog.records
    assert "[DirectoryCreationFailed/WriteError]" in log_record.getMessage()
    assert log_record.error_kind == "DirectoryCreationFailed"
    assert log_record.target == "Foo"
    assert log_record.exc_info is None


def test_error_attaches_exception_only_when_debugging():
    logger = MagicMock(spec=logging.Logger)
    sink = MessageSink(logger)
    exc = OSError("read-only file system")

    logger.isEnabledFor.return_value = False
    sink.error(_record(exc))
    assert logger.error.call_args.kwargs["exc_info"] is False

    logger.isEnabledFor.return_value = True
    sink.error(_record(exc))
    assert logger.error.call_args.kwargs["exc_info"] is exc
