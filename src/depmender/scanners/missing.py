"""Scanner for declared dependencies that are not installed"""

from depmender.core.models import IssueSeverity, ScanResult, ScannerKind

from .base import BaseDependencyScanner
from .context import ScanContext


ROLE_SEVERITY = {
    'dependencies': IssueSeverity.CRITICAL,
    'devDependencies': IssueSeverity.HIGH,
    'peerDependencies': IssueSeverity.HIGH,
    'optionalDependencies': IssueSeverity.LOW,
}

ROLE_LABELS = {
    'dependencies': 'dependency',
    'devDependencies': 'dev dependency',
    'peerDependencies': 'peer dependency',
    'optionalDependencies': 'optional dependency',
}


class MissingScanner(BaseDependencyScanner):
    """Reports every declared dependency absent from node_modules"""

    def get_kind(self) -> ScannerKind:
        return ScannerKind.MISSING

    async def scan(self, context: ScanContext) -> ScanResult:
        issues = []
        manifest = context.manifest

        for name, declared_range in sorted(manifest.declared_dependencies().items()):
            if context.is_installed(name):
                continue

            # A name declared under several roles takes its most important role
            role = manifest.dependency_role(name)
            issues.append(self._issue(
                package_name=name,
                severity=ROLE_SEVERITY[role],
                description=f"Missing {ROLE_LABELS[role]}: {name}@{declared_range} is declared but not installed",
                fixable=True,
                expected_version=declared_range,
            ))

        return self._result(issues)
