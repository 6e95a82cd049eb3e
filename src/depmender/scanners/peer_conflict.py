"""Scanner for peer dependency conflicts between installed packages"""

import json
from dataclasses import dataclass
from itertools import combinations
from pathlib import Path
from typing import Dict, List, Optional

from depmender.core.models import DependencyIssue, IssueSeverity, ScanResult, ScannerKind
from depmender.core.semver import VERSION_GRID, join_ranges, parse_range, parse_version, satisfies

from .base import BaseDependencyScanner
from .context import ScanContext


@dataclass
class PeerRequirement:
    required_by: str
    required_by_version: str
    version_range: str
    optional: bool = False


class PeerConflictScanner(BaseDependencyScanner):
    """
    Checks peerDependencies declared by installed packages

    Reports missing peers, installed peers outside a requirer's range, and
    pairs of requirers whose ranges have no common version. Every peer issue
    carries the ranges it depends on in expected_version, joined with " AND ",
    so a fix can look for one version that satisfies all of them.
    """

    def get_kind(self) -> ScannerKind:
        return ScannerKind.PEER_CONFLICTS

    async def scan(self, context: ScanContext) -> ScanResult:
        peer_map = self.build_peer_map(context)
        issues = []

        for peer_name in sorted(peer_map):
            requirements = peer_map[peer_name]
            installed = context.find_installed(peer_name)

            if installed is None:
                issue = self._check_missing_peer(peer_name, requirements)
                if issue is not None:
                    issues.append(issue)
            else:
                issues.extend(self._check_installed_peer(peer_name, installed.version, requirements))

            issues.extend(self._check_range_compatibility(
                peer_name, installed.version if installed else None, requirements))

        return self._result(issues)

    def build_peer_map(self, context: ScanContext) -> Dict[str, List[PeerRequirement]]:
        """
        Map each peer dependency name to the packages requiring it

        Reads every installed package's own package.json; unreadable
        manifests are skipped (BrokenScanner reports them).
        """
        peer_map: Dict[str, List[PeerRequirement]] = {}

        for pkg in context.installed_packages:
            data = self._read_manifest(Path(pkg.path) / 'package.json')
            if data is None:
                continue

            peers = data.get('peerDependencies')
            if not isinstance(peers, dict):
                continue
            meta = data.get('peerDependenciesMeta')
            meta = meta if isinstance(meta, dict) else {}

            for peer_name, version_range in peers.items():
                peer_meta = meta.get(peer_name)
                optional = bool(peer_meta.get('optional')) if isinstance(peer_meta, dict) else False
                peer_map.setdefault(peer_name, []).append(PeerRequirement(
                    required_by=pkg.name,
                    required_by_version=pkg.version,
                    version_range=str(version_range),
                    optional=optional,
                ))

        return peer_map

    def _read_manifest(self, package_json_path: Path) -> Optional[dict]:
        try:
            with open(package_json_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError):
            return None
        return data if isinstance(data, dict) else None

    def _check_missing_peer(self, peer_name: str,
                            requirements: List[PeerRequirement]) -> Optional[DependencyIssue]:
        required = [r for r in requirements if not r.optional]
        if not required:
            return None

        requirers = sorted({r.required_by for r in required})
        if len(requirers) >= 3:
            severity = IssueSeverity.CRITICAL
        elif len(requirers) == 2:
            severity = IssueSeverity.HIGH
        else:
            severity = IssueSeverity.MEDIUM

        return self._issue(
            package_name=peer_name,
            severity=severity,
            description=f"Missing peer dependency: {peer_name} is required by {', '.join(requirers)}",
            fixable=True,
            expected_version=join_ranges(r.version_range for r in requirements),
        )

    def _check_installed_peer(self, peer_name: str, installed_version: str,
                              requirements: List[PeerRequirement]) -> List[DependencyIssue]:
        installed = parse_version(installed_version)
        combined = join_ranges(r.version_range for r in requirements)
        issues = []

        for requirement in requirements:
            npm_spec = parse_range(requirement.version_range)
            if npm_spec is None or (installed is not None and npm_spec.match(installed)):
                continue

            issues.append(self._issue(
                package_name=peer_name,
                severity=IssueSeverity.MEDIUM if requirement.optional else IssueSeverity.HIGH,
                description=(f"Peer version conflict: {requirement.required_by}@"
                             f"{requirement.required_by_version} requires {peer_name}@"
                             f"{requirement.version_range}, found {installed_version}"),
                fixable=True,
                current_version=installed_version,
                expected_version=combined,
            ))

        return issues

    def _check_range_compatibility(self, peer_name: str, installed_version: Optional[str],
                                   requirements: List[PeerRequirement]) -> List[DependencyIssue]:
        issues = []

        for first, second in combinations(requirements, 2):
            if first.version_range == second.version_range:
                continue
            if self.ranges_compatible(first.version_range, second.version_range):
                continue

            both_optional = first.optional and second.optional
            issues.append(self._issue(
                package_name=peer_name,
                severity=IssueSeverity.MEDIUM if both_optional else IssueSeverity.HIGH,
                description=(f"Incompatible peer ranges: {first.required_by} requires "
                             f"{peer_name}@{first.version_range} but {second.required_by} requires "
                             f"{peer_name}@{second.version_range}"),
                fixable=False,
                current_version=installed_version,
                expected_version=join_ranges([first.version_range, second.version_range]),
            ))

        return issues

    @staticmethod
    def ranges_compatible(first: str, second: str) -> bool:
        """
        Whether some version on VERSION_GRID satisfies both ranges

        An approximation: ranges that only overlap outside the grid look
        incompatible. Non-semver ranges are assumed compatible.
        """
        if parse_range(first) is None or parse_range(second) is None:
            return True
        return any(satisfies(v, first) and satisfies(v, second) for v in VERSION_GRID)
