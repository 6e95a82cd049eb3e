"""Scanner for structurally broken installed packages"""

import json
import os
from pathlib import Path
from typing import List, Optional

from depmender.core.models import DependencyIssue, InstalledPackage, IssueSeverity, ScanResult, ScannerKind

from .base import BaseDependencyScanner
from .context import ScanContext


README_NAMES = ('readme', 'readme.md', 'readme.txt', 'readme.markdown', 'readme.rst')
LICENSE_NAMES = ('license', 'license.md', 'license.txt', 'licence', 'licence.md', 'licence.txt',
                 'license-mit', 'copying')


class BrokenScanner(BaseDependencyScanner):
    """
    Verifies the on-disk structure of every installed package

    Checks run in order and stop at the first fatal problem:
    1. package directory exists and is searchable
    2. package.json is present, valid JSON, and has name and version
    3. package.json name matches the install location
    4. main entry point exists and is a file
    5. nested node_modules is a readable directory
    6. directory and package.json are readable

    Missing README or LICENSE files are reported as low severity and do not
    stop the checks.
    """

    def get_kind(self) -> ScannerKind:
        return ScannerKind.BROKEN

    async def scan(self, context: ScanContext) -> ScanResult:
        issues = []
        for pkg in context.installed_packages:
            issues.extend(self.check_package(pkg))
        return self._result(issues)

    def check_package(self, pkg: InstalledPackage) -> List[DependencyIssue]:
        package_path = Path(pkg.path)

        if not package_path.is_dir():
            return [self._broken(pkg, f"Missing package directory: {package_path} does not exist")]

        issues = self._check_documentation(pkg, package_path)

        try:
            fatal = self._check_structure(pkg, package_path)
        except PermissionError as e:
            fatal = self._broken(pkg, f"Permission denied: cannot read {e.filename or package_path}")

        if fatal is not None:
            issues.insert(0, fatal)
        return issues

    def _check_structure(self, pkg: InstalledPackage, package_path: Path) -> Optional[DependencyIssue]:
        package_json_path = package_path / 'package.json'

        # Without search permission every lookup below fails as if the file were absent
        if not os.access(package_path, os.X_OK):
            return self._broken(pkg, f"Permission denied: {package_path} is not searchable")

        if not package_json_path.is_file():
            return self._broken(pkg, f"Missing package.json: {package_json_path} not found")

        try:
            with open(package_json_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return self._broken(pkg, f"Corrupted package.json: {package_json_path} is not valid JSON ({e})")

        if not isinstance(data, dict) or not data.get('name') or not data.get('version'):
            return self._broken(pkg, f"Invalid package.json: {package_json_path} is missing name or version")

        if data['name'] != pkg.name:
            return self._broken(
                pkg, f"Name mismatch: {package_path} contains '{data['name']}', expected '{pkg.name}'")

        entry = self._entry_point(data)
        if entry is not None:
            entry_path = package_path / entry
            if not entry_path.exists() and not self._has_implied_extension(entry_path):
                return self._broken(pkg, f"Missing main entry: {entry} not found in {package_path}")
            if entry_path.exists() and not entry_path.is_file() and not (entry_path / 'index.js').is_file():
                return self._broken(pkg, f"Invalid main entry: {entry} in {package_path} is not a file")

        nested = package_path / 'node_modules'
        if nested.exists():
            if not nested.is_dir():
                return self._broken(pkg, f"Corrupted nested dependencies: {nested} is not a directory")
            if not os.access(nested, os.R_OK | os.X_OK):
                return self._broken(pkg, f"Unreadable nested dependencies: {nested}")

        if not os.access(package_path, os.R_OK | os.X_OK) or not os.access(package_json_path, os.R_OK):
            return self._broken(pkg, f"Permission denied: {package_path} is not readable")

        return None

    def _entry_point(self, data: dict) -> Optional[str]:
        main = data.get('main')
        if isinstance(main, str) and main.strip():
            return main.strip()
        # ESM-only packages declare "exports"/"module" instead of a main entry
        if 'exports' in data or 'module' in data:
            return None
        return 'index.js'

    def _has_implied_extension(self, entry_path: Path) -> bool:
        # Node resolves "main": "lib/index" to lib/index.js or lib/index.json
        return any(entry_path.with_name(entry_path.name + ext).is_file() for ext in ('.js', '.json', '.cjs'))

    def _check_documentation(self, pkg: InstalledPackage, package_path: Path) -> List[DependencyIssue]:
        try:
            names = {entry.name.lower() for entry in package_path.iterdir()}
        except OSError:
            return []

        issues = []
        if not names.intersection(README_NAMES):
            issues.append(self._issue(
                package_name=pkg.name,
                severity=IssueSeverity.LOW,
                description=f"Missing README: {pkg.name} ships no README file",
                fixable=False,
                current_version=pkg.version,
            ))
        if not names.intersection(LICENSE_NAMES):
            issues.append(self._issue(
                package_name=pkg.name,
                severity=IssueSeverity.LOW,
                description=f"Missing LICENSE: {pkg.name} ships no LICENSE file",
                fixable=False,
                current_version=pkg.version,
            ))
        return issues

    def _broken(self, pkg: InstalledPackage, description: str) -> DependencyIssue:
        return self._issue(
            package_name=pkg.name,
            severity=IssueSeverity.HIGH,
            description=description,
            fixable=True,
            current_version=pkg.version if pkg.is_valid else None,
        )
