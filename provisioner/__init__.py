"""
PowerShell module provisioner.

Installs modules from a repository into the system module path, or saves
them to a directory for offline use, driven by a module list or manifest.
"""

from provisioner.backends import BaseRepositoryClient, PowerShellGetClient
from provisioner.context import ExecutionContext
from provisioner.models import Action, ModuleSpec, Scope
from provisioner.processor import BatchResult, ModuleProcessor

__all__ = [
    "Action",
    "BaseRepositoryClient",
    "BatchResult",
    "ExecutionContext",
    "ModuleProcessor",
    "ModuleSpec",
    "PowerShellGetClient",
    "Scope",
]
