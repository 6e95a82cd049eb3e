"""Base adapter interface for package managers"""

import asyncio
import json
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Dict, Any

from depmender.core.console import ConsoleLogger
from depmender.core.errors import AdapterError, LockfileError
from depmender.core.models import InstalledPackage, Lockfile, PackageManagerType


class PackageManagerAdapter(ABC):
    """
    Base class for package manager adapters

    Each adapter is responsible for:
    1. Reading and validating its lockfile
    2. Listing packages installed in node_modules
    3. Installing and updating single packages
    4. Regenerating the lockfile from scratch

    Mutating commands are bounded by a timeout so a hung package manager
    surfaces as an AdapterError instead of blocking the fixer.
    """

    def __init__(self, project_path, logger: ConsoleLogger = None, timeout: float = 300.0):
        """
        Initialize adapter

        Args:
            project_path: Project root directory (where package.json lives)
            logger: Optional console logger
            timeout: Seconds allowed for each package manager command
        """
        self.project_path = Path(project_path)
        self.logger = logger or ConsoleLogger(enabled=False)
        self.timeout = timeout

    @abstractmethod
    def get_type(self) -> PackageManagerType:
        """
        Return package manager identifier

        Returns:
            PackageManagerType
        """
        pass

    @abstractmethod
    def get_lockfile_name(self) -> str:
        """
        Return the lockfile name for this package manager

        Returns:
            File name (e.g., 'package-lock.json')
        """
        pass

    @abstractmethod
    def _parse_lockfile(self, lockfile_path: Path) -> Dict[str, Any]:
        """
        Parse and validate lockfile content

        Args:
            lockfile_path: Existing lockfile path

        Returns:
            Parsed lockfile content

        Raises:
            LockfileError: If content is unparsable or lacks required fields
        """
        pass

    @abstractmethod
    def _install_all_command(self) -> List[str]:
        pass

    @abstractmethod
    def _install_command(self, package_spec: str) -> List[str]:
        pass

    @abstractmethod
    def _update_command(self, package_spec: str) -> List[str]:
        pass

    def _root(self, project_path) -> Path:
        return Path(project_path) if project_path is not None else self.project_path

    def read_lockfile(self, project_path=None) -> Lockfile:
        """
        Read the lockfile for the project

        Args:
            project_path: Project root, defaults to the adapter's project

        Returns:
            Lockfile

        Raises:
            LockfileError: If the lockfile is absent, unparsable or incomplete
        """
        lockfile_path = self._root(project_path) / self.get_lockfile_name()

        if not lockfile_path.is_file():
            raise LockfileError(f"{self.get_lockfile_name()} not found in {lockfile_path.parent}")

        content = self._parse_lockfile(lockfile_path)
        return Lockfile(type=self.get_type(), content=content, path=str(lockfile_path))

    def get_installed_packages(self, project_path=None) -> List[InstalledPackage]:
        """
        List packages installed at the top level of node_modules

        Handles scoped packages (@org/package). Directories without a
        readable package.json are returned with is_valid=False.

        Args:
            project_path: Project root, defaults to the adapter's project

        Returns:
            Installed packages, empty when node_modules does not exist

        Raises:
            OSError: If node_modules exists but cannot be listed
        """
        node_modules_path = self._root(project_path) / 'node_modules'
        if not node_modules_path.is_dir():
            return []

        packages = []
        for item_path in sorted(node_modules_path.iterdir()):
            # .bin, .cache, .package-lock.json and friends
            if item_path.name.startswith('.') or not item_path.is_dir():
                continue

            if item_path.name.startswith('@'):
                for scoped_package in sorted(item_path.iterdir()):
                    if scoped_package.is_dir():
                        packages.append(self._read_installed_package(
                            scoped_package, f"{item_path.name}/{scoped_package.name}"))
            else:
                packages.append(self._read_installed_package(item_path, item_path.name))

        return packages

    def _read_installed_package(self, package_path: Path, package_name: str) -> InstalledPackage:
        package_json_path = package_path / 'package.json'

        try:
            with open(package_json_path, 'r', encoding='utf-8') as f:
                package_data = json.load(f)
        except FileNotFoundError:
            return InstalledPackage(name=package_name, version='unknown',
                                    path=str(package_path), is_valid=False)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Error reading {package_json_path}: {e}")
            return InstalledPackage(name=package_name, version='unknown',
                                    path=str(package_path), is_valid=False)

        version = package_data.get('version') if isinstance(package_data, dict) else None
        return InstalledPackage(
            name=package_name,
            version=str(version) if version else 'unknown',
            path=str(package_path),
            is_valid=bool(version),
        )

    async def install_package(self, name: str, version: Optional[str] = None):
        """Install a single package, optionally at a version or range"""
        package_spec = f"{name}@{version}" if version else name
        self.logger.info(f"📦 Installing {package_spec} with {self.get_type().value}")
        await self._run(self._install_command(package_spec))

    async def update_package(self, name: str, version: str):
        """Move an installed package to the given version or range"""
        package_spec = f"{name}@{version}"
        self.logger.info(f"⬆️  Updating {package_spec} with {self.get_type().value}")
        await self._run(self._update_command(package_spec))

    async def regenerate_lockfile(self):
        """Remove lockfile and node_modules, then run a clean install"""
        lockfile_path = self.project_path / self.get_lockfile_name()
        node_modules_path = self.project_path / 'node_modules'

        self.logger.info(f"🔄 Regenerating {self.get_lockfile_name()}")
        try:
            if lockfile_path.exists():
                lockfile_path.unlink()
            if node_modules_path.exists():
                shutil.rmtree(node_modules_path)
        except OSError as e:
            raise AdapterError(f"Could not clean install state: {e}") from e

        await self._run(self._install_all_command())

    async def _run(self, args: List[str]) -> str:
        """
        Run a package manager command in the project directory

        Returns:
            Captured stdout

        Raises:
            AdapterError: If the binary is missing, the command fails or times out
        """
        self.logger.debug(f"Running: {' '.join(args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=str(self.project_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise AdapterError(f"{args[0]} is not installed or not on PATH", command=args) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise AdapterError(f"Command timed out after {self.timeout:g}s: {' '.join(args)}", command=args)

        if process.returncode != 0:
            raise AdapterError(
                f"Command failed with exit code {process.returncode}: {' '.join(args)}",
                command=args,
                returncode=process.returncode,
                stderr=stderr.decode('utf-8', errors='replace'),
            )

        return stdout.decode('utf-8', errors='replace')
