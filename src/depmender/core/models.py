"""Data models for dependency health analysis and fixing"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List, Union


class IssueKind(str, Enum):
    OUTDATED = "outdated"
    MISSING = "missing"
    BROKEN = "broken"
    PEER_CONFLICT = "peer-conflict"
    VERSION_MISMATCH = "version-mismatch"
    SECURITY = "security"


class IssueSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SecuritySeverity(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class ScannerKind(str, Enum):
    OUTDATED = "outdated"
    MISSING = "missing"
    BROKEN = "broken"
    PEER_CONFLICTS = "peer-conflicts"
    VERSION_MISMATCHES = "version-mismatches"
    SECURITY = "security"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FixKind(str, Enum):
    INSTALL_MISSING = "install-missing"
    UPDATE_OUTDATED = "update-outdated"
    REGENERATE_LOCKFILE = "regenerate-lockfile"
    RESOLVE_CONFLICT = "resolve-conflict"


class FixActionKind(str, Enum):
    INSTALL = "install"
    UPDATE = "update"
    REGENERATE_LOCKFILE = "regenerate-lockfile"


class PackageManagerType(str, Enum):
    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"


# Each scanner owns exactly one issue kind
SCANNER_ISSUE_KINDS = {
    ScannerKind.OUTDATED: IssueKind.OUTDATED,
    ScannerKind.MISSING: IssueKind.MISSING,
    ScannerKind.BROKEN: IssueKind.BROKEN,
    ScannerKind.PEER_CONFLICTS: IssueKind.PEER_CONFLICT,
    ScannerKind.VERSION_MISMATCHES: IssueKind.VERSION_MISMATCH,
    ScannerKind.SECURITY: IssueKind.SECURITY,
}

_SEVERITY_RANKS = {
    'low': 1,
    'medium': 2,
    'moderate': 2,
    'high': 3,
    'critical': 4,
}

DEPENDENCY_ROLES = ('dependencies', 'devDependencies', 'peerDependencies', 'optionalDependencies')


def severity_rank(severity: Union[str, Enum]) -> int:
    """
    Numeric rank for any severity or risk level (higher is worse)

    Args:
        severity: IssueSeverity, SecuritySeverity, RiskLevel or its string value

    Returns:
        Rank from 1 (low) to 4 (critical), 0 for unknown values
    """
    value = severity.value if isinstance(severity, Enum) else str(severity)
    return _SEVERITY_RANKS.get(value.lower(), 0)


@dataclass
class DependencyIssue:
    """A single dependency problem reported by a scanner"""

    kind: IssueKind
    package_name: str
    severity: IssueSeverity
    description: str
    fixable: bool
    current_version: Optional[str] = None   # Installed version, if any
    expected_version: Optional[str] = None  # Declared range or pinned version
    latest_version: Optional[str] = None    # Latest published version (outdated only)

    def dedup_key(self):
        return (self.package_name, self.kind)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        result = {
            'kind': self.kind.value,
            'package_name': self.package_name,
            'severity': self.severity.value,
            'description': self.description,
            'fixable': self.fixable,
        }

        if self.current_version is not None:
            result['current_version'] = self.current_version
        if self.expected_version is not None:
            result['expected_version'] = self.expected_version
        if self.latest_version is not None:
            result['latest_version'] = self.latest_version

        return result


@dataclass
class VulnerabilityInfo:
    """Advisory details as reported by the vulnerability source"""

    id: str
    title: str
    description: str
    cvss_score: float
    cwe: List[str] = field(default_factory=list)
    references: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'cvss_score': self.cvss_score,
            'cwe': list(self.cwe),
            'references': list(self.references),
        }


@dataclass
class SecurityIssue:
    """A known vulnerability affecting an installed package"""

    package_name: str
    version: str
    vulnerability: VulnerabilityInfo
    severity: SecuritySeverity
    fixed_in: Optional[str] = None
    patch_available: bool = False

    def dedup_key(self):
        return (self.package_name, self.version, self.vulnerability.id)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'package_name': self.package_name,
            'version': self.version,
            'severity': self.severity.value,
            'patch_available': self.patch_available,
            'vulnerability': self.vulnerability.to_dict(),
        }
        if self.fixed_in:
            result['fixed_in'] = self.fixed_in
        return result


@dataclass
class ScanResult:
    """Output of one scanner invocation"""

    scanner_kind: ScannerKind
    issues: List[DependencyIssue] = field(default_factory=list)
    security_issues: List[SecurityIssue] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.issues and not self.security_issues


@dataclass
class ProjectInfo:
    """Basic facts about the analyzed project"""

    name: str
    version: str
    path: str
    package_manager: PackageManagerType
    total_dependencies: int = 0
    total_dev_dependencies: int = 0
    installed_packages: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'version': self.version,
            'path': self.path,
            'package_manager': self.package_manager.value,
            'total_dependencies': self.total_dependencies,
            'total_dev_dependencies': self.total_dev_dependencies,
            'installed_packages': self.installed_packages,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Deduplicated, severity-sorted and scored outcome of one analysis run"""

    health_score: int
    issues: List[DependencyIssue]
    security_vulnerabilities: List[SecurityIssue]
    package_manager: PackageManagerType
    project_info: ProjectInfo

    def issues_by_kind(self) -> Dict[IssueKind, List[DependencyIssue]]:
        grouped: Dict[IssueKind, List[DependencyIssue]] = {}
        for issue in self.issues:
            grouped.setdefault(issue.kind, []).append(issue)
        return grouped

    def summary(self) -> Dict[str, Any]:
        """
        Count issues per severity and kind, vulnerabilities per tier

        Returns:
            Dictionary with 'total_issues', 'by_severity', 'by_kind' and 'vulnerabilities'
        """
        by_severity = {s.value: 0 for s in IssueSeverity}
        by_kind = {k.value: 0 for k in IssueKind}
        vulnerabilities = {s.value: 0 for s in SecuritySeverity}

        for issue in self.issues:
            by_severity[issue.severity.value] += 1
            by_kind[issue.kind.value] += 1
        for vuln in self.security_vulnerabilities:
            vulnerabilities[vuln.severity.value] += 1

        return {
            'total_issues': len(self.issues),
            'by_severity': by_severity,
            'by_kind': by_kind,
            'vulnerabilities': vulnerabilities,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'health_score': self.health_score,
            'package_manager': self.package_manager.value,
            'project': self.project_info.to_dict(),
            'summary': self.summary(),
            'issues': [i.to_dict() for i in self.issues],
            'security_vulnerabilities': [v.to_dict() for v in self.security_vulnerabilities],
        }


@dataclass
class FixAction:
    kind: FixActionKind
    package_name: Optional[str] = None
    version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {'kind': self.kind.value}
        if self.package_name:
            result['package_name'] = self.package_name
        if self.version:
            result['version'] = self.version
        return result


@dataclass
class FixSuggestion:
    """A graded, ordered set of adapter actions remedying one problem"""

    kind: FixKind
    description: str
    risk: RiskLevel
    actions: List[FixAction] = field(default_factory=list)
    estimated_impact: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind.value,
            'description': self.description,
            'risk': self.risk.value,
            'estimated_impact': self.estimated_impact,
            'actions': [a.to_dict() for a in self.actions],
        }


@dataclass
class BackupInfo:
    original_path: str
    backup_path: str
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'original_path': self.original_path,
            'backup_path': self.backup_path,
            'timestamp': self.timestamp,
        }


@dataclass
class FixApplicationResult:
    success: bool
    applied_fixes: List[FixSuggestion] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    backup: Optional[BackupInfo] = None
    rolled_back: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'applied_fixes': [f.to_dict() for f in self.applied_fixes],
            'errors': list(self.errors),
            'backup': self.backup.to_dict() if self.backup else None,
            'rolled_back': self.rolled_back,
        }


@dataclass
class InstalledPackage:
    """A package found in the install directory"""

    name: str
    version: str
    path: str
    is_valid: bool = True   # False when the package directory has no package.json


@dataclass
class Lockfile:
    type: PackageManagerType
    content: Dict[str, Any]
    path: str

    @classmethod
    def empty(cls, manager: PackageManagerType, path: str = "") -> 'Lockfile':
        return cls(type=manager, content={}, path=path)

    def is_empty(self) -> bool:
        return not self.content


@dataclass
class PackageManifest:
    """Parsed package.json"""

    name: str
    version: str
    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)
    peer_dependencies: Dict[str, str] = field(default_factory=dict)
    optional_dependencies: Dict[str, str] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PackageManifest':
        """
        Build a manifest from decoded package.json content

        Args:
            data: Decoded JSON object

        Returns:
            PackageManifest

        Raises:
            ValueError: If name/version are missing or a dependency map is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("package.json must contain a JSON object")
        if not data.get('name') or not data.get('version'):
            raise ValueError("package.json must have name and version fields")

        maps = {}
        for role in DEPENDENCY_ROLES:
            value = data.get(role) or {}
            if not isinstance(value, dict):
                raise ValueError(f"{role} must be an object")
            maps[role] = {str(k): str(v) for k, v in value.items()}

        return cls(
            name=str(data['name']),
            version=str(data['version']),
            dependencies=maps['dependencies'],
            dev_dependencies=maps['devDependencies'],
            peer_dependencies=maps['peerDependencies'],
            optional_dependencies=maps['optionalDependencies'],
            raw=data,
        )

    def _role_maps(self):
        # Precedence order when a name is declared under several roles
        return (
            ('dependencies', self.dependencies),
            ('devDependencies', self.dev_dependencies),
            ('peerDependencies', self.peer_dependencies),
            ('optionalDependencies', self.optional_dependencies),
        )

    def declared_dependencies(self) -> Dict[str, str]:
        """All declared dependencies, name -> range"""
        merged: Dict[str, str] = {}
        for _, deps in reversed(self._role_maps()):
            merged.update(deps)
        return merged

    def dependency_role(self, name: str) -> Optional[str]:
        for role, deps in self._role_maps():
            if name in deps:
                return role
        return None
