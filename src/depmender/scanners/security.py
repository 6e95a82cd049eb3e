"""Scanner for known vulnerabilities in installed packages"""

from typing import List

from depmender.core.console import ConsoleLogger
from depmender.core.models import ScanResult, ScannerKind, SecurityIssue, SecuritySeverity, severity_rank
from depmender.core.semver import parse_version
from depmender.sources import Advisory, NpmAdvisorySource, VulnerabilitySource

from .base import BaseDependencyScanner
from .context import ScanContext


# Injection, XSS, SQL injection, code injection, XXE, deserialization
HIGH_IMPACT_CWES = frozenset({
    'CWE-78', 'CWE-79', 'CWE-89', 'CWE-94', 'CWE-611', 'CWE-502',
})

# Packages whose compromise affects a large share of the ecosystem
ECOSYSTEM_CRITICAL_PACKAGES = frozenset({
    'express', 'react', 'vue', 'angular', 'lodash', 'axios', 'request',
    'webpack', 'babel-core', 'typescript', 'eslint', 'jest',
})

_ESCALATION = {
    SecuritySeverity.LOW: SecuritySeverity.MODERATE,
    SecuritySeverity.MODERATE: SecuritySeverity.HIGH,
    SecuritySeverity.HIGH: SecuritySeverity.CRITICAL,
    SecuritySeverity.CRITICAL: SecuritySeverity.CRITICAL,
}


def cvss_to_severity(score: float) -> SecuritySeverity:
    if score >= 9.0:
        return SecuritySeverity.CRITICAL
    if score >= 7.0:
        return SecuritySeverity.HIGH
    if score >= 4.0:
        return SecuritySeverity.MODERATE
    return SecuritySeverity.LOW


class SecurityScanner(BaseDependencyScanner):
    """
    Turns advisories from a VulnerabilitySource into SecurityIssues

    Severity starts from the CVSS tier and goes up one tier when the flaw
    is serious and unpatched, belongs to a high-impact weakness class, or
    hits an ecosystem-critical package.
    """

    def __init__(self, source: VulnerabilitySource = None, logger: ConsoleLogger = None):
        super().__init__(logger)
        self.source = source or NpmAdvisorySource(logger=self.logger)

    def get_kind(self) -> ScannerKind:
        return ScannerKind.SECURITY

    async def scan(self, context: ScanContext) -> ScanResult:
        packages = {
            pkg.name: pkg.version for pkg, _ in context.installed_declared()
            if parse_version(pkg.version) is not None
        }
        if not packages:
            return self._result()

        try:
            advisories = await self.source.fetch_advisories(packages)
        except Exception as e:
            # The data source is best effort, no data is not a scan failure
            self.logger.warning(f"Vulnerability lookup failed: {e}")
            return self._result()

        security_issues = []
        for name, package_advisories in advisories.items():
            if name not in packages:
                continue
            for advisory in package_advisories:
                security_issues.append(self.build_issue(name, packages[name], advisory))

        return self._result(security_issues=self.sort_issues(security_issues))

    def build_issue(self, package_name: str, version: str, advisory: Advisory) -> SecurityIssue:
        vulnerability = advisory.vulnerability
        patch_available = bool(advisory.fixed_in)
        return SecurityIssue(
            package_name=package_name,
            version=version,
            vulnerability=vulnerability,
            severity=self.calculate_severity(package_name, vulnerability.cvss_score,
                                             vulnerability.cwe, patch_available),
            fixed_in=advisory.fixed_in,
            patch_available=patch_available,
        )

    @staticmethod
    def calculate_severity(package_name: str, cvss_score: float, cwe: List[str],
                           patch_available: bool) -> SecuritySeverity:
        severity = cvss_to_severity(cvss_score)

        unpatched_serious = not patch_available and cvss_score >= 7.0
        high_impact = cvss_score >= 6.0 and any(c.upper() in HIGH_IMPACT_CWES for c in cwe)
        # Only lifts low and moderate findings
        critical_package = (
            package_name in ECOSYSTEM_CRITICAL_PACKAGES
            and cvss_score >= 5.0
            and severity in (SecuritySeverity.LOW, SecuritySeverity.MODERATE)
        )

        if unpatched_serious or high_impact or critical_package:
            severity = _ESCALATION[severity]
        return severity

    @staticmethod
    def sort_issues(issues: List[SecurityIssue]) -> List[SecurityIssue]:
        """Severity descending, then CVSS descending, then patched first"""
        return sorted(issues, key=lambda i: (
            -severity_rank(i.severity),
            -i.vulnerability.cvss_score,
            not i.patch_available,
        ))
