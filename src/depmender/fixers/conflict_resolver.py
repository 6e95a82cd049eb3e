"""Finds one version of a peer dependency that all of its requirers accept"""

from typing import Dict, List, Optional

from depmender.core.models import DependencyIssue, IssueKind
from depmender.core.semver import common_version, parse_range, split_ranges


class ConflictResolver:
    """
    Groups peer conflicts by package and searches for a unified version

    A unified version is expressed as the intersection of the requirers'
    ranges (npm treats space separated comparators as AND), so the package
    manager still picks a real published release. Ranges joined with '||'
    cannot be intersected that way and fall back to the concrete version
    found by the search.
    """

    def group_conflicts(self, issues: List[DependencyIssue]) -> Dict[str, List[DependencyIssue]]:
        grouped: Dict[str, List[DependencyIssue]] = {}
        for issue in issues:
            if issue.kind == IssueKind.PEER_CONFLICT:
                grouped.setdefault(issue.package_name, []).append(issue)
        return grouped

    def required_ranges(self, issues: List[DependencyIssue]) -> List[str]:
        ranges = []
        for issue in issues:
            for spec in split_ranges(issue.expected_version):
                if spec not in ranges:
                    ranges.append(spec)
        return ranges

    def find_unified_version(self, ranges: List[str]) -> Optional[str]:
        """
        Range or version that satisfies every requirer

        Non-semver requirements (dist-tags, URLs) cannot be checked and are
        ignored unless nothing else is left.

        Returns:
            Install target, or None if the ranges have no common version
        """
        if len(ranges) == 1:
            return ranges[0]

        semver_ranges = [spec for spec in ranges if parse_range(spec) is not None]
        if not semver_ranges:
            return None
        if len(semver_ranges) == 1:
            return semver_ranges[0]

        version = common_version(semver_ranges)
        if version is None:
            return None
        if any('||' in spec for spec in semver_ranges):
            return str(version)
        return ' '.join(semver_ranges)
