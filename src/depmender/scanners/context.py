"""Immutable per-run project snapshot shared by all scanners"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Dict, List

from depmender.adapters import PackageManagerAdapter, create_adapter
from depmender.core.config import DepmenderConfig
from depmender.core.console import ConsoleLogger
from depmender.core.errors import DepmenderError, ManifestError, ProjectNotFoundError
from depmender.core.models import InstalledPackage, Lockfile, PackageManifest


@dataclass(frozen=True)
class ScanContext:
    """
    Everything a scanner may look at, built once per analysis

    Scanners must treat the context as read-only; installed packages are
    held in a tuple and the dataclass is frozen.
    """

    project_path: Path
    manifest: PackageManifest
    lockfile: Lockfile
    installed_packages: Tuple[InstalledPackage, ...]
    adapter: PackageManagerAdapter
    _installed_index: Dict[str, InstalledPackage] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'installed_packages', tuple(self.installed_packages))
        object.__setattr__(self, '_installed_index', {p.name: p for p in self.installed_packages})

    def find_installed(self, name: str) -> Optional[InstalledPackage]:
        return self._installed_index.get(name)

    def is_installed(self, name: str) -> bool:
        return name in self._installed_index

    def installed_declared(self) -> List[Tuple[InstalledPackage, str]]:
        """Installed packages that the manifest declares, with their declared range"""
        declared = self.manifest.declared_dependencies()
        return [(pkg, declared[pkg.name]) for pkg in self.installed_packages if pkg.name in declared]


class ScanContextFactory:
    """Builds ScanContext objects from a project directory"""

    def __init__(self, config: DepmenderConfig = None, logger: ConsoleLogger = None):
        self.config = config or DepmenderConfig()
        self.logger = logger or ConsoleLogger(enabled=False)

    def create(self, project_path, package_manager=None,
               adapter: PackageManagerAdapter = None) -> ScanContext:
        """
        Build a context for one project

        Lockfile and node_modules problems are downgraded to warnings so
        scanners can still report on what is there.

        Args:
            project_path: Project root directory
            package_manager: Force a package manager instead of detecting it
            adapter: Use this adapter instead of creating one

        Returns:
            ScanContext

        Raises:
            ProjectNotFoundError: If the directory does not exist
            ManifestError: If package.json is missing, invalid or incomplete
        """
        root = Path(project_path).resolve()
        if not root.is_dir():
            raise ProjectNotFoundError(f"Project directory not found: {root}")

        manifest = self.read_manifest(root)
        if adapter is None:
            adapter = create_adapter(root, package_manager, logger=self.logger)

        try:
            lockfile = adapter.read_lockfile(root)
        except DepmenderError as e:
            self.logger.warning(f"{e}, continuing without lockfile")
            lockfile = Lockfile.empty(adapter.get_type())

        try:
            installed = adapter.get_installed_packages(root)
        except (OSError, DepmenderError) as e:
            self.logger.warning(f"Could not list installed packages: {e}")
            installed = []

        self.logger.debug(
            f"Context: {manifest.name}@{manifest.version}, {adapter.get_type().value}, "
            f"{len(installed)} installed package(s)")

        return ScanContext(
            project_path=root,
            manifest=manifest,
            lockfile=lockfile,
            installed_packages=tuple(installed),
            adapter=adapter,
        )

    def read_manifest(self, root: Path) -> PackageManifest:
        package_json_path = root / 'package.json'
        if not package_json_path.is_file():
            raise ManifestError(f"package.json not found in {root}")

        try:
            with open(package_json_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ManifestError(f"Invalid JSON in {package_json_path}: {e}") from e
        except OSError as e:
            raise ManifestError(f"Cannot read {package_json_path}: {e}") from e

        try:
            manifest = PackageManifest.from_dict(data)
        except ValueError as e:
            raise ManifestError(f"Invalid {package_json_path}: {e}") from e

        if not self.config.rules.include_dev and manifest.dev_dependencies:
            self.logger.debug(f"Ignoring {len(manifest.dev_dependencies)} devDependencies (includeDev is off)")
            manifest.dev_dependencies = {}

        return manifest
