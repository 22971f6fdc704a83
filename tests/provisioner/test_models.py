# tests/provisioner/test_models.py
from pathlib import Path

import pytest
from pydantic import ValidationError

from provisioner.errors import ErrorCategory, ErrorKind, ProvisioningError
from provisioner.models import Action, ModuleSpec, RunConfig, Scope
from settings.config_models import ModuleDefaults


def test_defaults_applied_only_when_absent():
    spec = ModuleSpec.model_validate({"Name": "Foo", "Repository": "PSGallery"})

    options = spec.effective_options(ModuleDefaults())

    assert options.allow_prerelease is False
    assert options.accept_license is False
    assert options.confirm is False
    assert options.force is True
    assert options.skip_publisher_check is False
    assert options.scope == Scope.CURRENT_USER
    assert options.path is None


def test_explicit_values_survive_merge():
    spec = ModuleSpec.model_validate(
        {
            "Name": "Foo",
            "Repository": "PSGallery",
            "AllowPreRelease": True,
            "AcceptLicense": True,
            "Confirm": True,
            "Force": False,
            "SkipPublisherCheck": True,
            "Scope": "AllUsers",
        }
    )
    defaults = ModuleDefaults(
        allow_prerelease=False,
        accept_license=False,
        confirm=False,
        force=True,
        skip_publisher_check=False,
        scope="CurrentUser",
    )

    options = spec.effective_options(defaults)

    assert options.allow_prerelease is True
    assert options.accept_license is True
    assert options.confirm is True
    assert options.force is False
    assert options.skip_publisher_check is True
    assert options.scope == Scope.ALL_USERS


def test_explicit_false_is_not_replaced_by_true_default():
    spec = ModuleSpec(name="Foo", repository="PSGallery", force=False)
    defaults = ModuleDefaults(allow_prerelease=True, force=True)

    options = spec.effective_options(defaults)

    assert options.force is False
    assert options.allow_prerelease is True


def test_keys_are_case_insensitive():
    spec = ModuleSpec.model_validate(
        {"name": "Foo", "REPOSITORY": "PSGallery", "allowprerelease": True, "scope": "allusers"}
    )

    assert spec.name == "Foo"
    assert spec.repository == "PSGallery"
    assert spec.allow_prerelease is True
    assert spec.scope == Scope.ALL_USERS


def test_snake_case_field_names_accepted():
    spec = ModuleSpec.model_validate(
        {"name": "Foo", "repository": "PSGallery", "skip_publisher_check": True}
    )

    assert spec.skip_publisher_check is True


def test_unknown_key_rejected():
    with pytest.raises(ValidationError):
        ModuleSpec.model_validate({"Name": "Foo", "Repositry": "PSGallery"})


def test_invalid_scope_rejected():
    with pytest.raises(ValidationError):
        ModuleSpec.model_validate({"Name": "Foo", "Scope": "Machine"})


def test_missing_keys():
    assert ModuleSpec(name="Foo", repository="PSGallery").missing_keys() == ()
    assert ModuleSpec(name="  ").missing_keys() == ("Name", "Repository")
    assert ModuleSpec.model_validate({"Name": None, "Repository": "X"}).missing_keys() == ("Name",)


def test_spec_is_frozen():
    spec = ModuleSpec(name="Foo", repository="PSGallery")

    with pytest.raises(ValidationError):
        spec.name = "Bar"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Install", Action.INSTALL),
        ("install", Action.INSTALL),
        (" SAVE ", Action.SAVE),
        (Action.SAVE, Action.SAVE),
    ],
)
def test_action_parse(value, expected):
    assert Action.parse(value) == expected


@pytest.mark.parametrize("value", ["Uninstall", "", None])
def test_action_parse_rejects(value):
    with pytest.raises(ProvisioningError) as excinfo:
        Action.parse(value)

    assert excinfo.value.record.kind == ErrorKind.INVALID_ACTION
    assert excinfo.value.record.category == ErrorCategory.INVALID_ARGUMENT


def test_target_directory():
    config = RunConfig(action=Action.SAVE, modules=(), save_path_root=Path("/tmp/Modules"))

    assert config.target_directory(ModuleSpec(name="Foo")) == Path("/tmp/Modules/Foo")
    assert config.target_directory(
        ModuleSpec(name="Foo", path="/opt/offline")
    ) == Path("/opt/offline")
