"""
Module loaders.

A loader turns a root (a directory, or declarations built in code) into the
raw declarations the registry consumes. ``DirectoryLoader`` walks a directory
recursively, imports every Python file and collects its module-level
``component`` mapping; files and folders that are not modules are walked past
and ignored.
"""

from __future__ import annotations

import importlib.util
import logging
import sys
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DECLARATION_ATTR = "component"


@dataclass(frozen=True)
class LoadedModule:
    """One declaration found by a loader."""
    name: str
    declaration: Mapping[str, Any]
    origin: str = "<memory>"


class ModuleLoader(ABC):
    """Yields the loadable modules under ``root``."""

    @abstractmethod
    def load(self, root: Any) -> list[LoadedModule]:
        ...


class StaticLoader(ModuleLoader):
    """Declarations that already exist as mappings."""

    def load(self, root: Any) -> list[LoadedModule]:
        if root is None:
            return []
        if isinstance(root, Mapping):
            root = [root]
        modules = []
        for declaration in root:
            name = declaration.get("name") if isinstance(declaration, Mapping) else None
            modules.append(LoadedModule(name=str(name or ""), declaration=declaration))
        return modules


class DirectoryLoader(ModuleLoader):
    """
    Recursive directory loader.

    Args:
        attribute: module-level name holding the declaration
        package: prefix for the names imported modules get in sys.modules
    """

    def __init__(self, attribute: str = DECLARATION_ATTR, package: str = "tandem.loaded") -> None:
        self.attribute = attribute
        self.package = package

    def load(self, root: Any) -> list[LoadedModule]:
        path = Path(root)
        if not path.is_dir():
            raise NotADirectoryError(f"component root not found: {path}")

        modules: list[LoadedModule] = []
        for py_file in sorted(path.rglob("*.py")):
            if any(part.startswith(("_", ".")) for part in py_file.relative_to(path).parts):
                continue
            declaration = self._load_declaration(path, py_file)
            if declaration is None:
                continue
            modules.append(
                LoadedModule(
                    name=str(declaration.get("name") or ""),
                    declaration=declaration,
                    origin=str(py_file),
                )
            )

        logger.info("Loaded %d component module(s) from %s", len(modules), path)
        return modules

    def _load_declaration(self, root: Path, py_file: Path) -> Mapping[str, Any] | None:
        relative = py_file.relative_to(root).with_suffix("")
        module_name = ".".join((self.package, root.name, *relative.parts))

        spec = importlib.util.spec_from_file_location(module_name, py_file)
        if spec is None or spec.loader is None:
            return None

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception:
            del sys.modules[module_name]
            logger.error("Failed to import %s", py_file)
            raise

        declaration = getattr(module, self.attribute, None)
        if declaration is None:
            logger.debug("No %r in %s, skipping", self.attribute, py_file)
            return None
        if not isinstance(declaration, Mapping):
            logger.warning("%s.%s is not a mapping, skipping", py_file.name, self.attribute)
            return None
        return declaration


def load_modules(root: Any, loader: ModuleLoader | None = None) -> list[LoadedModule]:
    """Pick a loader for ``root`` unless one is given."""
    if loader is not None:
        return loader.load(root)
    if root is None:
        return []
    if isinstance(root, (str, Path)):
        return DirectoryLoader().load(root)
    if isinstance(root, Iterable):
        return StaticLoader().load(root)
    raise TypeError(f"cannot load components from {type(root).__name__}")
