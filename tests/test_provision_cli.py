# tests/test_provision_cli.py
import logging

import pytest

import provision
from provisioner.errors import ErrorCategory, ErrorKind, ErrorRecord
from provisioner.models import Action
from provisioner.processor import BatchResult, HaltReason


@pytest.fixture
def absent_config(tmp_path):
    return str(tmp_path / "absent.yaml")


@pytest.fixture
def wired_main(mocker):
    """Patch everything main() builds so no process or logging state is touched."""
    mocker.patch("provision.setup_logging")
    context_factory = mocker.patch("provision.ExecutionContext.for_current_platform")
    client_cls = mocker.patch("provision.PowerShellGetClient")
    processor_cls = mocker.patch("provision.ModuleProcessor")
    return context_factory, client_cls, processor_cls


def test_parse_args_module_flags():
    parsed = provision.parse_args(
        ["install", "--module", "Foo", "--module", "Bar", "--scope", "AllUsers", "--no-force"]
    )

    assert parsed.action == "install"
    assert parsed.modules == ["Foo", "Bar"]
    assert parsed.scope == "AllUsers"
    assert parsed.force is False
    assert parsed.allow_prerelease is None
    assert parsed.log_level is None


def test_parse_args_verbose_sets_debug():
    parsed = provision.parse_args(["-v", "save", "--manifest", "modules.json"])

    assert parsed.log_level == "DEBUG"
    assert parsed.manifest == "modules.json"
    assert parsed.modules is None


def test_manifest_and_module_are_exclusive(capsys):
    with pytest.raises(SystemExit) as excinfo:
        provision.parse_args(["install", "--manifest", "m.json", "--module", "Foo"])

    assert excinfo.value.code == 2


def test_build_cli_modules_sets_only_given_flags():
    parsed = provision.parse_args(
        ["save", "--module", "Foo", "--repository", "Internal", "--accept-license", "--path", "/opt/Foo"]
    )

    assert provision.build_cli_modules(parsed) == [
        {
            "Name": "Foo",
            "Repository": "Internal",
            "AcceptLicense": True,
            "Path": "/opt/Foo",
        }
    ]


def test_build_cli_modules_without_modules():
    parsed = provision.parse_args(["install", "--manifest", "modules.psd1"])

    assert provision.build_cli_modules(parsed) is None


def test_main_success(wired_main, absent_config):
    context_factory, client_cls, processor_cls = wired_main
    processor_cls.return_value.run.return_value = BatchResult(
        action=Action.INSTALL, succeeded=["Foo"]
    )

    code = provision.main(["--config", absent_config, "Install", "--module", "Foo"])

    assert code == 0
    run = processor_cls.return_value.run
    run.assert_called_once_with(
        "Install",
        modules=[{"Name": "Foo", "Repository": "PSGallery"}],
        manifest_path=None,
    )
    argv = context_factory.call_args.kwargs["argv"]
    assert argv[1:] == ["--config", absent_config, "Install", "--module", "Foo"]


def test_main_reports_failure(wired_main, absent_config):
    _, _, processor_cls = wired_main
    record = ErrorRecord(
        kind=ErrorKind.MODULE_INSTALLATION_FAILED,
        category=ErrorCategory.CONNECTION_ERROR,
        message="offline",
        target="Foo",
    )
    processor_cls.return_value.run.return_value = BatchResult(
        action=Action.INSTALL, failed=["Foo"], errors=[record]
    )

    assert provision.main(["--config", absent_config, "install", "--module", "Foo"]) == 1


def test_main_elevation_relaunch_is_success(wired_main, absent_config):
    _, _, processor_cls = wired_main
    processor_cls.return_value.run.return_value = BatchResult(
        action=Action.INSTALL,
        halted=True,
        halt_reason=HaltReason.ELEVATION_REQUESTED,
    )

    assert provision.main(["--config", absent_config, "install", "--module", "Foo"]) == 0


def test_log_summary(caplog):
    logger = logging.getLogger("test_provision_cli")
    result = BatchResult(
        action=Action.SAVE,
        succeeded=["A"],
        skipped=["B"],
        halted=True,
        halt_reason=HaltReason.ALREADY_INSTALLED,
    )

    with caplog.at_level(logging.INFO, logger="test_provision_cli"):
        provision.log_summary(result, logger)

    assert "1 succeeded, 1 skipped, 0 failed, 0 error(s)" in caplog.text
    assert "AlreadyInstalled" in caplog.text
