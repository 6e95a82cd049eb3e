"""Scanner for installed versions outside their declared range"""

from typing import Optional

from depmender.core.models import DependencyIssue, InstalledPackage, IssueSeverity, ScanResult, ScannerKind
from depmender.core.semver import (
    base_version, is_exact_version, min_satisfying_version, parse_range, parse_version, version_diff,
)

from .base import BaseDependencyScanner
from .context import ScanContext


TOO_HIGH_SEVERITY = {
    'major': IssueSeverity.HIGH,
    'minor': IssueSeverity.MEDIUM,
    'patch': IssueSeverity.LOW,
    'prerelease': IssueSeverity.LOW,
}


class VersionMismatchScanner(BaseDependencyScanner):
    """
    Classifies installed versions that do not satisfy the manifest

    Classification order: invalid version, exact pin mismatch, prerelease,
    too high, too low, generic range mismatch. Declared specifiers that are
    not semver ranges (dist-tags, git URLs, file: and workspace: protocols)
    are not checked.
    """

    def get_kind(self) -> ScannerKind:
        return ScannerKind.VERSION_MISMATCHES

    async def scan(self, context: ScanContext) -> ScanResult:
        issues = []
        for pkg, declared in context.installed_declared():
            issue = self.check_package(pkg, declared)
            if issue is not None:
                issues.append(issue)
        return self._result(issues)

    def check_package(self, pkg: InstalledPackage, declared: str) -> Optional[DependencyIssue]:
        npm_spec = parse_range(declared)
        if npm_spec is None:
            self.logger.debug(f"Skipping {pkg.name}: '{declared}' is not a semver range")
            return None

        installed = parse_version(pkg.version)
        if installed is None:
            return self._mismatch(pkg, declared, IssueSeverity.CRITICAL,
                                  f"Invalid version: {pkg.name} has non-semver version '{pkg.version}'")

        if npm_spec.match(installed):
            return None

        if is_exact_version(declared):
            return self._mismatch(pkg, declared, IssueSeverity.HIGH,
                                  f"Exact version mismatch: {pkg.name}@{pkg.version} installed, "
                                  f"{declared} pinned")

        if installed.prerelease:
            return self._mismatch(pkg, declared, IssueSeverity.MEDIUM,
                                  f"Prerelease mismatch: {pkg.name}@{pkg.version} is a prerelease, "
                                  f"{declared} expects a stable release")

        minimum = min_satisfying_version(declared)
        if minimum is not None and installed > minimum:
            diff = version_diff(base_version(declared) or minimum, installed)
            severity = TOO_HIGH_SEVERITY.get(diff, IssueSeverity.LOW)
            return self._mismatch(pkg, declared, severity,
                                  f"Version too high: {pkg.name}@{pkg.version} is above {declared}"
                                  f" ({diff or 'range'} difference)")

        if minimum is not None and installed < minimum:
            return self._mismatch(pkg, declared, IssueSeverity.MEDIUM,
                                  f"Version too low: {pkg.name}@{pkg.version} is below {declared} "
                                  f"(minimum {minimum})")

        return self._mismatch(pkg, declared, IssueSeverity.MEDIUM,
                              f"Range mismatch: {pkg.name}@{pkg.version} does not satisfy {declared}")

    def _mismatch(self, pkg: InstalledPackage, declared: str, severity: IssueSeverity,
                  description: str) -> DependencyIssue:
        return self._issue(
            package_name=pkg.name,
            severity=severity,
            description=description,
            fixable=True,
            current_version=pkg.version,
            expected_version=declared,
        )
