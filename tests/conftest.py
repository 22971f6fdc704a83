# tests/conftest.py
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import pytest

from provisioner.backends import BaseRepositoryClient
from provisioner.context import ExecutionContext
from provisioner.messages import MessageSink
from provisioner.models import ModuleOptions
from provisioner.processor import ModuleProcessor
from settings.config_models import AppSettings


class FakeRepositoryClient(BaseRepositoryClient):
    """Records backing calls; raises the configured exception per module name."""

    def __init__(
        self,
        installed: Iterable[str] = (),
        failures: Optional[Dict[str, Exception]] = None,
    ):
        super().__init__(AppSettings(), logging.getLogger("fake-client"))
        self.installed = set(installed)
        self.failures = dict(failures or {})
        self.calls: List[tuple] = []

    def is_installed(self, name: str) -> bool:
        self.calls.append(("is_installed", name))
        return name in self.installed

    def install(self, name: str, repository: str, options: ModuleOptions) -> None:
        self.calls.append(("install", name, repository, options))
        if name in self.failures:
            raise self.failures[name]

    def save(
        self, name: str, repository: str, options: ModuleOptions, path: Path
    ) -> None:
        self.calls.append(("save", name, repository, options, path))
        if name in self.failures:
            raise self.failures[name]

    def calls_of(self, operation: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == operation]


class FakeIdentity:
    def __init__(self, elevated: bool = False, admin: bool = False):
        self.elevated = elevated
        self.admin = admin

    def is_elevated(self) -> bool:
        return self.elevated

    def is_admin_eligible(self) -> bool:
        return self.admin


class FakeRelauncher:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.launches: List[List[str]] = []

    def relaunch(self, argv: Sequence[str]) -> None:
        self.launches.append(list(argv))
        if self.error is not None:
            raise self.error


@pytest.fixture
def app_settings(tmp_path):
    """Settings with the save root inside the test's temp directory."""
    return AppSettings(save_path_root=tmp_path / "Modules")


@pytest.fixture
def sink():
    return MessageSink(logging.getLogger("test-provision"))


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def relauncher():
    return FakeRelauncher()


@pytest.fixture
def context(identity, relauncher, sink):
    return ExecutionContext(
        identity=identity,
        relauncher=relauncher,
        sink=sink,
        argv=["provision.py", "install", "--manifest", "modules.json"],
    )


@pytest.fixture
def client():
    return FakeRepositoryClient()


@pytest.fixture
def processor(client, context, app_settings):
    return ModuleProcessor(client, context, app_settings)
