"""Dependency analysis: run scanners, aggregate and score the results"""

from typing import Dict, Iterable, List, Optional

from depmender.core.config import DepmenderConfig
from depmender.core.console import ConsoleLogger
from depmender.core.models import (
    AnalysisResult, DependencyIssue, IssueKind, IssueSeverity, ProjectInfo, ScanResult,
    ScannerKind, SecurityIssue, SecuritySeverity, VulnerabilityInfo, severity_rank,
)
from depmender.scanners import ScanContext, ScanContextFactory, ScannerRegistry, create_default_registry
from depmender.scanners.security import SecurityScanner


# Penalty points per issue / vulnerability by severity
ISSUE_SEVERITY_WEIGHTS = {
    IssueSeverity.CRITICAL: 20,
    IssueSeverity.HIGH: 10,
    IssueSeverity.MEDIUM: 5,
    IssueSeverity.LOW: 2,
}

SECURITY_SEVERITY_WEIGHTS = {
    SecuritySeverity.CRITICAL: 50,
    SecuritySeverity.HIGH: 25,
    SecuritySeverity.MODERATE: 10,
    SecuritySeverity.LOW: 5,
}

# Share of each penalty factor in the final score
FACTOR_WEIGHTS = {
    'security': 0.4,
    'outdated': 0.2,
    'missing': 0.15,
    'peer_conflicts': 0.15,
    'broken': 0.1,
}

# Version mismatches count toward the outdated factor at half weight
VERSION_MISMATCH_FACTOR = 0.5


def calculate_health_score(issues: Iterable[DependencyIssue],
                           vulnerabilities: Iterable[SecurityIssue]) -> int:
    """
    Health score from 0 (unhealthy) to 100 (no problems)

    Returns:
        100 minus the weighted penalty sum, rounded and clamped to [0, 100]
    """
    factors = {name: 0.0 for name in FACTOR_WEIGHTS}

    for vuln in vulnerabilities:
        factors['security'] += SECURITY_SEVERITY_WEIGHTS.get(vuln.severity, 0)

    for issue in issues:
        weight = ISSUE_SEVERITY_WEIGHTS.get(issue.severity, 0)
        if issue.kind == IssueKind.MISSING:
            factors['missing'] += weight
        elif issue.kind == IssueKind.PEER_CONFLICT:
            factors['peer_conflicts'] += weight
        elif issue.kind == IssueKind.OUTDATED:
            factors['outdated'] += weight
        elif issue.kind == IssueKind.VERSION_MISMATCH:
            factors['outdated'] += weight * VERSION_MISMATCH_FACTOR
        elif issue.kind == IssueKind.BROKEN:
            factors['broken'] += weight
        elif issue.kind == IssueKind.SECURITY:
            factors['security'] += weight

    penalty = sum(factors[name] * FACTOR_WEIGHTS[name] for name in FACTOR_WEIGHTS)
    return max(0, min(100, int(round(100 - penalty))))


def is_valid_issue(issue) -> bool:
    return (
        isinstance(issue, DependencyIssue)
        and isinstance(issue.kind, IssueKind)
        and isinstance(issue.severity, IssueSeverity)
        and isinstance(issue.package_name, str) and bool(issue.package_name)
        and isinstance(issue.description, str)
        and isinstance(issue.fixable, bool)
    )


def is_valid_security_issue(issue) -> bool:
    if not isinstance(issue, SecurityIssue):
        return False
    vulnerability = issue.vulnerability
    return (
        isinstance(issue.severity, SecuritySeverity)
        and isinstance(issue.package_name, str) and bool(issue.package_name)
        and isinstance(issue.version, str)
        and isinstance(vulnerability, VulnerabilityInfo)
        and bool(vulnerability.id)
        and isinstance(vulnerability.cvss_score, (int, float))
        and 0 <= vulnerability.cvss_score <= 10
    )


class DependencyAnalyzer:
    """
    Runs scanners over a project and produces one AnalysisResult

    Malformed scanner output is dropped rather than failing the run.
    Issues are deduplicated on (package, kind), keeping the most severe.
    """

    def __init__(self, registry: ScannerRegistry = None, config: DepmenderConfig = None,
                 logger: ConsoleLogger = None, context_factory: ScanContextFactory = None):
        self.config = config or DepmenderConfig()
        self.logger = logger or ConsoleLogger(enabled=False)
        self.registry = registry or create_default_registry(self.config, self.logger)
        self.context_factory = context_factory or ScanContextFactory(self.config, self.logger)

    async def analyze(self, project_path, scanners: Optional[Iterable[ScannerKind]] = None,
                      package_manager=None) -> AnalysisResult:
        """
        Analyze a project

        Args:
            project_path: Project root directory
            scanners: Scanner kinds to run, all registered scanners when None
            package_manager: Force a package manager instead of detecting it

        Returns:
            AnalysisResult

        Raises:
            ProjectNotFoundError: If the project directory does not exist
            ManifestError: If package.json is missing or invalid
            ScannerNotRegisteredError: If a requested scanner is not registered
        """
        context = self.context_factory.create(project_path, package_manager=package_manager)

        if scanners is None:
            results = await self.registry.run_all(context)
        else:
            results = await self.registry.run(list(scanners), context)

        return self.aggregate(results, context)

    def aggregate(self, results: List[ScanResult], context: ScanContext) -> AnalysisResult:
        raw_issues = [issue for result in results for issue in result.issues]
        raw_vulnerabilities = [vuln for result in results for vuln in result.security_issues]

        issues = self._clean_issues(raw_issues)
        vulnerabilities = self._clean_vulnerabilities(raw_vulnerabilities)

        manifest = context.manifest
        project_info = ProjectInfo(
            name=manifest.name,
            version=manifest.version,
            path=str(context.project_path),
            package_manager=context.adapter.get_type(),
            total_dependencies=len(manifest.dependencies),
            total_dev_dependencies=len(manifest.dev_dependencies),
            installed_packages=len(context.installed_packages),
        )

        return AnalysisResult(
            health_score=calculate_health_score(issues, vulnerabilities),
            issues=issues,
            security_vulnerabilities=vulnerabilities,
            package_manager=context.adapter.get_type(),
            project_info=project_info,
        )

    def _clean_issues(self, raw_issues: List[DependencyIssue]) -> List[DependencyIssue]:
        valid = [i for i in raw_issues if is_valid_issue(i)]
        if len(valid) != len(raw_issues):
            self.logger.debug(f"Discarded {len(raw_issues) - len(valid)} malformed issue(s)")

        rules = self.config.rules
        kept: Dict[tuple, DependencyIssue] = {}
        for issue in valid:
            if rules.is_excluded(issue.package_name):
                continue
            key = issue.dedup_key()
            existing = kept.get(key)
            if existing is None or self._outranks(issue, existing):
                kept[key] = issue

        return sorted(kept.values(), key=lambda i: (-severity_rank(i.severity), i.package_name, i.kind.value))

    @staticmethod
    def _outranks(issue: DependencyIssue, existing: DependencyIssue) -> bool:
        """More severe wins; on a tie an issue that cannot be auto-fixed wins"""
        rank, existing_rank = severity_rank(issue.severity), severity_rank(existing.severity)
        if rank != existing_rank:
            return rank > existing_rank
        return existing.fixable and not issue.fixable

    def _clean_vulnerabilities(self, raw: List[SecurityIssue]) -> List[SecurityIssue]:
        valid = [v for v in raw if is_valid_security_issue(v)]
        if len(valid) != len(raw):
            self.logger.debug(f"Discarded {len(raw) - len(valid)} malformed vulnerability record(s)")

        rules = self.config.rules
        allowed = set(rules.allowed_vulnerabilities)
        kept: Dict[tuple, SecurityIssue] = {}
        for vuln in valid:
            if rules.is_excluded(vuln.package_name) or vuln.severity in allowed:
                continue
            kept.setdefault(vuln.dedup_key(), vuln)

        return SecurityScanner.sort_issues(list(kept.values()))
