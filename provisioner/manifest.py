# provisioner/manifest.py
# -*- coding: utf-8 -*-
"""
Input resolution: turn a direct module collection or a manifest file into
an ordered list of ModuleSpec records.
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from . import psd1
from .errors import ErrorKind, ProvisioningError
from .models import ModuleSpec

module_logger = logging.getLogger(__name__)

JSON_EXTENSIONS = (".json",)
PSD1_EXTENSIONS = (".psd1",)
MODULES_KEY = "Modules"

ModuleInput = Union[ModuleSpec, Mapping[str, Any]]


def _to_spec(item: Any, index: int, source: Any) -> ModuleSpec:
    if isinstance(item, ModuleSpec):
        return item
    if not isinstance(item, Mapping):
        raise ProvisioningError.invalid_argument(
            ErrorKind.INVALID_MANIFEST_CONTENT,
            f"Module entry #{index + 1} in {source} is not an object: {item!r}",
            target=source,
        )
    try:
        return ModuleSpec.model_validate(dict(item))
    except ValidationError as e:
        raise ProvisioningError.invalid_argument(
            ErrorKind.INVALID_MANIFEST_CONTENT,
            f"Module entry #{index + 1} in {source} is invalid: {e}",
            target=source,
            exception=e,
        ) from e


def _to_specs(items: Any, source: Any) -> List[ModuleSpec]:
    # A single hashtable/object is accepted as a one-element list.
    if isinstance(items, Mapping):
        items = [items]
    if not isinstance(items, list):
        raise ProvisioningError.invalid_argument(
            ErrorKind.INVALID_MANIFEST_CONTENT,
            f"Expected a list of modules in {source}, got {type(items).__name__}",
            target=source,
        )
    return [_to_spec(item, index, source) for index, item in enumerate(items)]


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise ProvisioningError.invalid_argument(
            ErrorKind.INVALID_MANIFEST_CONTENT,
            f"Could not read manifest '{path}': {e}",
            target=str(path),
            exception=e,
        ) from e


def load_json_manifest(path: Path) -> List[ModuleSpec]:
    """Load a JSON manifest: an array of module objects."""
    try:
        data = json.loads(_read_text(path))
    except json.JSONDecodeError as e:
        raise ProvisioningError.invalid_argument(
            ErrorKind.INVALID_MANIFEST_CONTENT,
            f"Could not parse JSON manifest '{path}': {e}",
            target=str(path),
            exception=e,
        ) from e
    return _to_specs(data, str(path))


def load_psd1_manifest(path: Path) -> List[ModuleSpec]:
    """Load a PowerShell data file manifest with a top-level ``Modules`` array."""
    try:
        data = psd1.loads(_read_text(path))
    except psd1.Psd1Error as e:
        raise ProvisioningError.invalid_argument(
            ErrorKind.INVALID_MANIFEST_CONTENT,
            f"Could not parse data file manifest '{path}': {e}",
            target=str(path),
            exception=e,
        ) from e
    if not isinstance(data, Mapping):
        raise ProvisioningError.invalid_argument(
            ErrorKind.INVALID_MANIFEST_CONTENT,
            f"Data file manifest '{path}' must contain a hashtable.",
            target=str(path),
        )
    modules = psd1.find_key(data, MODULES_KEY)
    if modules is None:
        raise ProvisioningError.invalid_argument(
            ErrorKind.INVALID_MANIFEST_CONTENT,
            f"Data file manifest '{path}' has no '{MODULES_KEY}' key.",
            target=str(path),
        )
    return _to_specs(modules, str(path))


def load_manifest(
    manifest_path: Union[str, Path],
    current_logger: Optional[logging.Logger] = None,
) -> List[ModuleSpec]:
    """
    Load a manifest, choosing the reader from the file extension.

    Raises:
        ProvisioningError: InvalidFileFormat for an unsupported extension,
            InvalidManifestContent when the file is missing or malformed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    path = Path(manifest_path)
    suffix = path.suffix.lower()

    if suffix in JSON_EXTENSIONS:
        loader = load_json_manifest
    elif suffix in PSD1_EXTENSIONS:
        loader = load_psd1_manifest
    else:
        raise ProvisioningError.invalid_argument(
            ErrorKind.INVALID_FILE_FORMAT,
            f"Unsupported manifest format '{suffix or path.name}'. Use a .json or .psd1 file.",
            target=str(path),
        )

    if not path.is_file():
        raise ProvisioningError.invalid_argument(
            ErrorKind.INVALID_MANIFEST_CONTENT,
            f"Manifest file '{path}' does not exist.",
            target=str(path),
        )

    specs = loader(path)
    logger_to_use.debug(f"Loaded {len(specs)} module(s) from {path}")
    return specs


def resolve_modules(
    modules: Optional[Iterable[ModuleInput]] = None,
    manifest_path: Optional[Union[str, Path]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> List[ModuleSpec]:
    """
    Produce the ordered module list from exactly one source.

    A direct collection wins over a manifest path; with neither, the run is
    rejected before any module is touched.

    Raises:
        ProvisioningError: MissingRequiredParameters, InvalidFileFormat or
            InvalidManifestContent.
    """
    if modules is not None:
        specs = _to_specs(list(modules), "modules")
    elif manifest_path:
        specs = load_manifest(manifest_path, current_logger)
    else:
        raise ProvisioningError.invalid_argument(
            ErrorKind.MISSING_REQUIRED_PARAMETERS,
            "Missing required input: supply either modules or a manifest path.",
        )

    if not specs:
        if modules is not None:
            raise ProvisioningError.invalid_argument(
                ErrorKind.MISSING_REQUIRED_PARAMETERS,
                "Missing required input: the module collection is empty.",
            )
        raise ProvisioningError.invalid_argument(
            ErrorKind.INVALID_MANIFEST_CONTENT,
            f"Manifest '{manifest_path}' does not list any modules.",
            target=str(manifest_path),
        )
    return specs
