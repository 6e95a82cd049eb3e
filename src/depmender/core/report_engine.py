"""Report generation for dependency analysis results"""

import json
import os
from pathlib import Path
from typing import List, Optional

import click

from .models import AnalysisResult, DependencyIssue, FixApplicationResult, FixSuggestion, IssueKind


SEVERITY_COLORS = {
    'critical': 'red',
    'high': 'red',
    'medium': 'yellow',
    'moderate': 'yellow',
    'low': 'white',
}

KIND_TITLES = {
    IssueKind.MISSING: "📭 MISSING PACKAGES",
    IssueKind.VERSION_MISMATCH: "🔀 VERSION MISMATCHES",
    IssueKind.PEER_CONFLICT: "🤝 PEER DEPENDENCY CONFLICTS",
    IssueKind.BROKEN: "💥 BROKEN INSTALLATIONS",
    IssueKind.OUTDATED: "⏳ OUTDATED PACKAGES",
    IssueKind.SECURITY: "🛡️  SECURITY",
}


def score_color(score: int) -> str:
    if score >= 80:
        return 'green'
    if score >= 50:
        return 'yellow'
    return 'red'


class ReportEngine:
    """
    Renders analysis and fix results

    Supports:
    - Console output with colored formatting
    - JSON export, with paths relative to the project when
      DEPMENDER_PATH_PREFIX is "."
    """

    def __init__(self, project_dir: Optional[str] = None):
        self.project_dir = Path(project_dir) if project_dir else None
        self.path_prefix = os.environ.get('DEPMENDER_PATH_PREFIX', None)

    def _format_path(self, path: str) -> str:
        if not self.path_prefix or not self.project_dir:
            return path

        try:
            rel_path = Path(path).relative_to(self.project_dir.absolute())
        except ValueError:
            # Path is outside the project directory
            return path

        if self.path_prefix == ".":
            return f"./{rel_path}" if str(rel_path) != "." else "."
        return str(Path(self.path_prefix) / rel_path)

    def print_report(self, analysis: AnalysisResult, suggestions: Optional[List[FixSuggestion]] = None):
        """Print formatted console report"""
        info = analysis.project_info
        click.echo("\n" + click.style("=" * 80, fg='white', bold=True))
        click.echo(click.style("DEPENDENCY HEALTH REPORT", fg='white', bold=True))
        click.echo(click.style("=" * 80, fg='white', bold=True))

        click.echo(f"\n{click.style('Project:', bold=True)} {info.name}@{info.version}")
        click.echo(f"{click.style('Path:', bold=True)} {self._format_path(info.path)}")
        click.echo(f"{click.style('Package Manager:', bold=True)} {analysis.package_manager.value}")
        click.echo(f"{click.style('Installed Packages:', bold=True)} {info.installed_packages}")

        score = analysis.health_score
        click.echo(click.style("\n❤️  Health Score: ", bold=True) +
                   click.style(f"{score}/100", fg=score_color(score), bold=True))

        if not analysis.issues and not analysis.security_vulnerabilities:
            click.echo(click.style("\n✓ No dependency issues found!", fg='green', bold=True))
            click.echo(click.style("   Your dependencies look healthy.\n", fg='green'))
            return

        grouped = analysis.issues_by_kind()
        for kind, title in KIND_TITLES.items():
            if kind in grouped:
                self._print_issue_group(title, grouped[kind])

        if analysis.security_vulnerabilities:
            self._print_vulnerabilities(analysis)

        if suggestions:
            self.print_suggestions(suggestions)

        self._print_summary(analysis)

    def _print_issue_group(self, title: str, issues: List[DependencyIssue]):
        click.echo("\n" + click.style("─" * 80, fg='cyan'))
        click.echo(click.style(f"{title} ({len(issues)}):", fg='cyan', bold=True))
        click.echo(click.style("─" * 80, fg='cyan'))

        for issue in issues:
            severity = issue.severity.value
            click.echo(f"\n  {click.style(severity.upper(), fg=SEVERITY_COLORS[severity], bold=True)} "
                       f"{click.style(issue.package_name, bold=True)}")
            click.echo(f"  {issue.description}")
            if issue.current_version:
                click.echo(f"  Installed: {issue.current_version}")
            if issue.expected_version:
                click.echo(f"  Expected: {issue.expected_version}")
            if issue.latest_version:
                click.echo(f"  Latest: {issue.latest_version}")
            if not issue.fixable:
                click.echo(click.style("  Needs manual attention", dim=True))

    def _print_vulnerabilities(self, analysis: AnalysisResult):
        vulns = analysis.security_vulnerabilities
        click.echo("\n" + click.style("─" * 80, fg='red'))
        click.echo(click.style(f"🛡️  SECURITY VULNERABILITIES ({len(vulns)}):", fg='red', bold=True))
        click.echo(click.style("─" * 80, fg='red'))

        for vuln in vulns:
            severity = vuln.severity.value
            click.echo(f"\n  {click.style(severity.upper(), fg=SEVERITY_COLORS[severity], bold=True)} "
                       + click.style(f"{vuln.package_name}@{vuln.version}", fg='red', bold=True))
            click.echo(f"  {vuln.vulnerability.title} ({vuln.vulnerability.id}, "
                       f"CVSS {vuln.vulnerability.cvss_score:.1f})")
            if vuln.patch_available:
                click.echo(f"  Fixed in: {vuln.fixed_in}")
            else:
                click.echo(click.style("  No patched version available", fg='yellow'))
            for reference in vuln.vulnerability.references[:3]:
                click.echo(click.style(f"  {reference}", dim=True))

    def print_suggestions(self, suggestions: List[FixSuggestion]):
        click.echo("\n" + click.style("💡 Suggested Fixes:", fg='cyan', bold=True))
        for idx, suggestion in enumerate(suggestions, 1):
            risk = suggestion.risk.value
            click.echo(click.style(f"   {idx}.", fg='cyan') + f" {suggestion.description} " +
                       click.style(f"[{risk} risk]", fg=SEVERITY_COLORS[risk]))

    def print_fix_result(self, result: FixApplicationResult):
        click.echo("\n" + click.style("=" * 80, fg='white', bold=True))
        if result.success:
            click.echo(click.style(f"✓ Applied {len(result.applied_fixes)} fix(es)", fg='green', bold=True))
        else:
            click.echo(click.style(
                f"⚠️  Applied {len(result.applied_fixes)} fix(es) with {len(result.errors)} error(s)",
                fg='yellow', bold=True))
            for error in result.errors:
                click.echo(click.style(f"   • {error}", fg='red'))
        if result.rolled_back:
            click.echo(click.style("↩️  package.json was restored from backup", fg='yellow', bold=True))
        if result.backup:
            click.echo(f"{click.style('Backup:', bold=True)} {self._format_path(result.backup.backup_path)}")

    def _print_summary(self, analysis: AnalysisResult):
        summary = analysis.summary()
        click.echo("\n" + click.style("=" * 80, fg='white', bold=True))
        click.echo(click.style("Total issues: ", fg='white', bold=True) +
                   click.style(str(summary['total_issues']), fg='red', bold=True) +
                   click.style("   Vulnerabilities: ", fg='white', bold=True) +
                   click.style(str(len(analysis.security_vulnerabilities)), fg='red', bold=True))
        click.echo(click.style("=" * 80, fg='white', bold=True))

        click.echo("\n" + click.style("📊 Summary:", fg='cyan', bold=True))
        for severity, count in reversed(list(summary['by_severity'].items())):
            if count:
                click.echo(f"   • {severity}: " + click.style(str(count), fg=SEVERITY_COLORS[severity], bold=True))
        click.echo()

    def save_report(self, analysis: AnalysisResult, output_file: str,
                    suggestions: Optional[List[FixSuggestion]] = None) -> bool:
        """
        Save analysis to a JSON file

        Args:
            analysis: Result to save
            output_file: Path to output file
            suggestions: Optional fix suggestions to include

        Returns:
            True if saved successfully, False otherwise
        """
        report = self.to_json_dict(analysis, suggestions)
        try:
            with open(output_file, 'w', encoding='utf-8') as f:
                json.dump(report, f, indent=2)
        except OSError as e:
            click.echo(click.style(f"⚠️  Warning: Could not write report to {output_file}: {e}",
                                   fg='yellow'), err=True)
            return False

        click.echo(click.style(f"📄 Report written to {output_file}", fg='cyan'))
        return True

    def to_json_dict(self, analysis: AnalysisResult, suggestions: Optional[List[FixSuggestion]] = None) -> dict:
        report = analysis.to_dict()
        report['project']['path'] = self._format_path(report['project']['path'])
        if suggestions is not None:
            report['suggestions'] = [s.to_dict() for s in suggestions]
        return report
