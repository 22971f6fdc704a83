# tests/provisioner/test_manifest.py
import json

import pytest

from provisioner.errors import ErrorCategory, ErrorKind, ProvisioningError
from provisioner.manifest import load_manifest, resolve_modules
from provisioner.models import ModuleSpec, Scope


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return path


def _kind_of(excinfo):
    return excinfo.value.record.kind


def test_json_manifest_single_module(tmp_path):
    manifest = _write(
        tmp_path / "modules.json", '[{"Name":"Foo","Repository":"PSGallery"}]'
    )

    specs = resolve_modules(manifest_path=manifest)

    assert len(specs) == 1
    spec = specs[0]
    assert spec.name == "Foo"
    assert spec.repository == "PSGallery"
    assert spec.allow_prerelease is None
    assert spec.accept_license is None
    assert spec.confirm is None
    assert spec.force is None
    assert spec.skip_publisher_check is None
    assert spec.scope is None
    assert spec.path is None


def test_json_extension_is_case_insensitive(tmp_path):
    manifest = _write(
        tmp_path / "MODULES.JSON", '[{"Name":"Foo","Repository":"PSGallery"}]'
    )

    assert [s.name for s in load_manifest(manifest)] == ["Foo"]


def test_psd1_manifest(tmp_path):
    manifest = _write(
        tmp_path / "modules.psd1",
        """@{
    Modules = @(
        @{ Name = 'Foo'; Repository = 'PSGallery'; Scope = 'AllUsers' }
        @{ Name = 'Bar'; Repository = 'Internal'; Force = $false }
    )
}""",
    )

    specs = resolve_modules(manifest_path=str(manifest))

    assert [s.name for s in specs] == ["Foo", "Bar"]
    assert specs[0].scope == Scope.ALL_USERS
    assert specs[1].force is False


def test_psd1_manifest_with_bom(tmp_path):
    manifest = tmp_path / "modules.psd1"
    manifest.write_bytes(
        "\ufeff@{ Modules = @( @{ Name = 'Foo'; Repository = 'PSGallery' } ) }".encode("utf-8")
    )

    assert [s.name for s in resolve_modules(manifest_path=manifest)] == ["Foo"]


def test_psd1_single_hashtable_module(tmp_path):
    manifest = _write(
        tmp_path / "modules.psd1",
        "@{ modules = @{ Name = 'Foo'; Repository = 'PSGallery' } }",
    )

    assert [s.name for s in resolve_modules(manifest_path=manifest)] == ["Foo"]


def test_psd1_without_modules_key(tmp_path):
    manifest = _write(tmp_path / "modules.psd1", "@{ Packages = @() }")

    with pytest.raises(ProvisioningError) as excinfo:
        resolve_modules(manifest_path=manifest)

    assert _kind_of(excinfo) == ErrorKind.INVALID_MANIFEST_CONTENT


@pytest.mark.parametrize("name", ["modules.yaml", "modules.txt", "modules"])
def test_unsupported_extension(tmp_path, name):
    manifest = _write(tmp_path / name, "[]")

    with pytest.raises(ProvisioningError) as excinfo:
        resolve_modules(manifest_path=manifest)

    assert _kind_of(excinfo) == ErrorKind.INVALID_FILE_FORMAT
    assert excinfo.value.record.category == ErrorCategory.INVALID_ARGUMENT


def test_unsupported_extension_checked_before_existence(tmp_path):
    with pytest.raises(ProvisioningError) as excinfo:
        resolve_modules(manifest_path=tmp_path / "missing.yaml")

    assert _kind_of(excinfo) == ErrorKind.INVALID_FILE_FORMAT


def test_missing_input():
    with pytest.raises(ProvisioningError) as excinfo:
        resolve_modules()

    assert _kind_of(excinfo) == ErrorKind.MISSING_REQUIRED_PARAMETERS
    assert excinfo.value.record.category == ErrorCategory.INVALID_ARGUMENT


def test_empty_direct_collection():
    with pytest.raises(ProvisioningError) as excinfo:
        resolve_modules(modules=[])

    assert _kind_of(excinfo) == ErrorKind.MISSING_REQUIRED_PARAMETERS


def test_direct_collection_wins_and_keeps_order(tmp_path):
    manifest = _write(
        tmp_path / "modules.json", '[{"Name":"FromFile","Repository":"PSGallery"}]'
    )
    direct = [
        ModuleSpec(name="B", repository="PSGallery"),
        {"Name": "A", "Repository": "PSGallery"},
        ModuleSpec(name="C", repository="PSGallery"),
    ]

    specs = resolve_modules(modules=direct, manifest_path=manifest)

    assert [s.name for s in specs] == ["B", "A", "C"]
    assert specs[0] is direct[0]


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[]",
        '"Foo"',
        '[{"Name": "Foo", "Unexpected": 1}]',
        '["Foo"]',
    ],
)
def test_bad_json_content(tmp_path, content):
    manifest = _write(tmp_path / "modules.json", content)

    with pytest.raises(ProvisioningError) as excinfo:
        resolve_modules(manifest_path=manifest)

    assert _kind_of(excinfo) == ErrorKind.INVALID_MANIFEST_CONTENT
    assert excinfo.value.record.category == ErrorCategory.INVALID_ARGUMENT


def test_nonexistent_manifest(tmp_path):
    with pytest.raises(ProvisioningError) as excinfo:
        resolve_modules(manifest_path=tmp_path / "absent.json")

    assert _kind_of(excinfo) == ErrorKind.INVALID_MANIFEST_CONTENT


def test_json_object_accepted_as_single_module(tmp_path):
    manifest = _write(
        tmp_path / "modules.json",
        json.dumps({"Name": "Foo", "Repository": "PSGallery"}),
    )

    assert [s.name for s in resolve_modules(manifest_path=manifest)] == ["Foo"]
