"""Turns analysis findings into graded fix suggestions"""

from typing import Dict, List, Optional, Set

from depmender.core.models import (
    AnalysisResult, DependencyIssue, FixAction, FixActionKind, FixKind, FixSuggestion,
    IssueKind, RiskLevel, SecurityIssue, SecuritySeverity,
)
from depmender.core.semver import min_satisfying_version, parse_version, version_diff

from .conflict_resolver import ConflictResolver


def update_risk(current: Optional[str], target: Optional[str]) -> RiskLevel:
    """
    Risk of moving a package from one version to another

    patch -> low, minor -> low (medium below 1.0.0), major -> high,
    downgrades -> medium (high across a major). Unknown versions -> medium.
    """
    current_version = parse_version(current)
    target_version = parse_version(target)
    if current_version is None or target_version is None:
        return RiskLevel.MEDIUM

    diff = version_diff(current_version, target_version)
    if diff is None:
        return RiskLevel.LOW

    if target_version < current_version:
        return RiskLevel.HIGH if diff == 'major' else RiskLevel.MEDIUM

    if diff == 'major':
        return RiskLevel.HIGH
    if diff == 'minor':
        # 0.x minors are allowed to break the API
        return RiskLevel.MEDIUM if current_version.major == 0 else RiskLevel.LOW
    return RiskLevel.LOW


class SuggestionEngine:
    """
    Builds one suggestion per problem package

    Vulnerabilities are handled first and claim their package, so a
    vulnerable package is not also offered a plain "update to latest".
    Any suggestion touching a package with an unpatched critical
    vulnerability is graded critical. Suggestions without actions are
    advisories (for example, vulnerabilities without a patched version, or
    peer dependencies whose requirers share no common version).
    """

    def __init__(self, resolver: ConflictResolver = None):
        self.resolver = resolver or ConflictResolver()

    def generate(self, analysis: AnalysisResult) -> List[FixSuggestion]:
        suggestions: List[FixSuggestion] = []
        handled: Set[str] = set()

        vulnerabilities = self._group_vulnerabilities(analysis.security_vulnerabilities)
        unpatched_critical = {
            name for name, vulns in vulnerabilities.items()
            if any(v.severity == SecuritySeverity.CRITICAL and not v.patch_available for v in vulns)
        }

        for name, vulns in vulnerabilities.items():
            suggestion = self._security_suggestion(name, vulns, name in unpatched_critical)
            if suggestion.actions:
                handled.add(name)
            suggestions.append(suggestion)

        peer_conflicts = self.resolver.group_conflicts(analysis.issues)
        broken = []
        for issue in analysis.issues:
            if issue.package_name in handled:
                continue
            if issue.kind == IssueKind.PEER_CONFLICT:
                # Unfixable range conflicts still get an advisory
                suggestion = self._peer_suggestion(issue.package_name, peer_conflicts[issue.package_name])
            elif not issue.fixable:
                continue
            elif issue.kind == IssueKind.BROKEN:
                broken.append(issue)
                continue
            else:
                suggestion = self._issue_suggestion(issue)

            if suggestion is None:
                continue
            if issue.package_name in unpatched_critical:
                suggestion.risk = RiskLevel.CRITICAL
            handled.add(issue.package_name)
            suggestions.append(suggestion)

        if broken:
            suggestions.append(self._reinstall_suggestion(broken, unpatched_critical))

        return suggestions

    def _group_vulnerabilities(self, vulnerabilities: List[SecurityIssue]) -> Dict[str, List[SecurityIssue]]:
        # Input is already ordered by severity, dict keeps first-seen order
        grouped: Dict[str, List[SecurityIssue]] = {}
        for vuln in vulnerabilities:
            grouped.setdefault(vuln.package_name, []).append(vuln)
        return grouped

    def _security_suggestion(self, name: str, vulns: List[SecurityIssue],
                             unpatched_critical: bool) -> FixSuggestion:
        current = vulns[0].version
        fixed_versions = [parse_version(v.fixed_in) for v in vulns if v.patch_available]
        fixed_versions = [v for v in fixed_versions if v is not None]
        worst = vulns[0].severity.value
        ids = ', '.join(v.vulnerability.id for v in vulns)

        if not fixed_versions:
            return FixSuggestion(
                kind=FixKind.RESOLVE_CONFLICT,
                description=(f"No patched version of {name}@{current} fixes {ids}; "
                             f"consider replacing or removing the package"),
                risk=RiskLevel.CRITICAL if unpatched_critical else RiskLevel.HIGH,
                actions=[],
                estimated_impact=f"{len(vulns)} {worst} vulnerability(ies) remain until a patch is released",
            )

        # The highest fixed version covers every patchable advisory
        target = str(max(fixed_versions))
        patched = sum(1 for v in vulns if v.patch_available)
        return FixSuggestion(
            kind=FixKind.UPDATE_OUTDATED,
            description=f"Update {name} from {current} to {target} to fix {ids}",
            risk=RiskLevel.CRITICAL if unpatched_critical else update_risk(current, target),
            actions=[FixAction(FixActionKind.UPDATE, name, target)],
            estimated_impact=f"Fixes {patched} of {len(vulns)} known vulnerability(ies) (worst: {worst})",
        )

    def _issue_suggestion(self, issue: DependencyIssue) -> Optional[FixSuggestion]:
        name = issue.package_name

        if issue.kind == IssueKind.MISSING:
            return FixSuggestion(
                kind=FixKind.INSTALL_MISSING,
                description=f"Install missing package {name}@{issue.expected_version or 'latest'}",
                risk=RiskLevel.LOW,
                actions=[FixAction(FixActionKind.INSTALL, name, issue.expected_version)],
                estimated_impact="Adds a declared package that is not installed",
            )

        if issue.kind == IssueKind.OUTDATED and issue.latest_version:
            return FixSuggestion(
                kind=FixKind.UPDATE_OUTDATED,
                description=f"Update {name} from {issue.current_version} to {issue.latest_version}",
                risk=update_risk(issue.current_version, issue.latest_version),
                actions=[FixAction(FixActionKind.UPDATE, name, issue.latest_version)],
                estimated_impact=f"{version_diff(issue.current_version, issue.latest_version) or 'version'} update",
            )

        if issue.kind == IssueKind.VERSION_MISMATCH and issue.expected_version:
            return self._range_suggestion(name, issue.current_version, issue.expected_version,
                                          FixActionKind.UPDATE)

        return None

    def _peer_suggestion(self, name: str, issues: List[DependencyIssue]) -> Optional[FixSuggestion]:
        ranges = self.resolver.required_ranges(issues)
        if not ranges:
            return None

        target = self.resolver.find_unified_version(ranges)
        current = next((i.current_version for i in issues if i.current_version), None)

        if target is None:
            return FixSuggestion(
                kind=FixKind.RESOLVE_CONFLICT,
                description=(f"No single version of {name} satisfies {' and '.join(ranges)}; "
                             f"update or replace one of the packages requiring it"),
                risk=RiskLevel.HIGH,
                actions=[],
                estimated_impact=f"{len(ranges)} incompatible peer requirement(s) need a manual decision",
            )

        if current is None:
            if len(ranges) > 1:
                description = f"Install unified peer dependency {name}@{target} to resolve all conflicts"
            else:
                description = f"Install missing peer dependency {name}@{target}"
            return FixSuggestion(
                kind=FixKind.RESOLVE_CONFLICT,
                description=description,
                risk=RiskLevel.MEDIUM,
                actions=[FixAction(FixActionKind.INSTALL, name, target)],
                estimated_impact=f"Resolves {len(ranges)} peer dependency requirement(s) with a single version",
            )

        return self._range_suggestion(name, current, target, FixActionKind.INSTALL)

    def _range_suggestion(self, name: str, current_version: Optional[str], target: str,
                          action_kind: FixActionKind) -> FixSuggestion:
        """Move an installed package back inside a declared or required range"""
        current = parse_version(current_version)
        minimum = min_satisfying_version(target)

        if current is None or minimum is None:
            risk = RiskLevel.MEDIUM
            upgrade = True
        else:
            upgrade = current < minimum
            risk = update_risk(str(current), str(minimum))

        return FixSuggestion(
            kind=FixKind.UPDATE_OUTDATED if upgrade else FixKind.RESOLVE_CONFLICT,
            description=(f"{'Upgrade' if upgrade else 'Downgrade'} {name} from "
                         f"{current_version} to match {target}"),
            risk=risk,
            actions=[FixAction(action_kind, name, target)],
            estimated_impact=f"Brings {name} back in line with {target}",
        )

    def _reinstall_suggestion(self, broken: List[DependencyIssue], unpatched_critical: Set[str]) -> FixSuggestion:
        names = sorted({issue.package_name for issue in broken})
        return FixSuggestion(
            kind=FixKind.REGENERATE_LOCKFILE,
            description=f"Reinstall {len(names)} broken package(s) ({', '.join(names)}) by regenerating the lockfile",
            risk=RiskLevel.CRITICAL if unpatched_critical.intersection(names) else RiskLevel.MEDIUM,
            actions=[FixAction(FixActionKind.REGENERATE_LOCKFILE)],
            estimated_impact="Removes node_modules and the lockfile, then performs a clean install",
        )
