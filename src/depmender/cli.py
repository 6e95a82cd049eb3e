#!/usr/bin/env python3
"""
Dependency Health Scanner and Fixer

CLI usage:
    depmender scan --dir /path/to/project
    depmender scan --scanner missing --scanner security --json
    depmender fix --dir /path/to/project --max-risk medium --yes
"""

import asyncio
import json
import os
import sys
from typing import Optional

import click

from depmender import __version__
from depmender.adapters import create_adapter, get_available_package_managers
from depmender.analyzer import DependencyAnalyzer
from depmender.core import ConsoleLogger, DepmenderError, ReportEngine, load_config
from depmender.core.models import (
    IssueSeverity, RiskLevel, ScannerKind, SecuritySeverity,
)
from depmender.fixers import AutoFixer, SuggestionEngine


def print_banner(title: str):
    click.echo(click.style("=" * 80, fg='cyan', bold=True))
    click.echo(click.style(title, fg='cyan', bold=True))
    click.echo(click.style("=" * 80, fg='cyan', bold=True))


def fail(message: str):
    click.echo(click.style(f"✗ Error: {message}", fg='red', bold=True), err=True)
    sys.exit(1)


def run_analysis(project_dir: str, config, logger, scanners=None, package_manager=None):
    analyzer = DependencyAnalyzer(config=config, logger=logger)
    kinds = [ScannerKind(s) for s in scanners] if scanners else None
    try:
        return asyncio.run(analyzer.analyze(project_dir, scanners=kinds, package_manager=package_manager))
    except DepmenderError as e:
        fail(str(e))


def has_critical_findings(analysis) -> bool:
    return (any(i.severity == IssueSeverity.CRITICAL for i in analysis.issues) or
            any(v.severity == SecuritySeverity.CRITICAL for v in analysis.security_vulnerabilities))


dir_option = click.option(
    "--dir",
    "project_dir",
    type=click.Path(file_okay=False, dir_okay=True, path_type=str),
    default=lambda: os.getcwd(),
    show_default="current working directory",
    help="Project directory containing package.json",
)
config_option = click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=str),
    default=None,
    help="Path to a depmender JSON config file (default: depmender.config.json in the project)",
)
package_manager_option = click.option(
    "--package-manager",
    type=click.Choice(get_available_package_managers()),
    default=None,
    help="Package manager to use (default: auto-detect)",
)
verbose_option = click.option("--verbose", "-v", is_flag=True, help="Show debug output")


@click.group(name="depmender", help="Dependency health scanner and fixer for npm, yarn and pnpm projects")
@click.version_option(__version__, prog_name="depmender")
def cli():
    """Dependency health scanner CLI"""


@cli.command(help="Scan a project and report dependency issues")
@dir_option
@click.option(
    "--scanner",
    "scanners",
    type=click.Choice([k.value for k in ScannerKind]),
    multiple=True,
    help="Scanner to run (repeatable). Default: all scanners",
)
@click.option("--json", "json_output", is_flag=True, help="Print the report as JSON to stdout")
@click.option(
    "--output",
    "output_file",
    type=click.Path(writable=True, dir_okay=False, path_type=str),
    default=None,
    help="File to write a JSON report to",
)
@config_option
@package_manager_option
@verbose_option
def scan(project_dir: str, scanners: tuple, json_output: bool, output_file: Optional[str],
         config_file: Optional[str], package_manager: Optional[str], verbose: bool):
    """Run the analysis and print a report"""
    project_dir = os.path.abspath(project_dir)
    try:
        config = load_config(project_dir, config_file)
    except DepmenderError as e:
        fail(str(e))

    json_output = json_output or config.output.format == 'json'
    logger = ConsoleLogger(enabled=not json_output, verbose=verbose)

    if not json_output:
        print_banner("🩺 Dependency Health Scanner")
        click.echo(f"\n{click.style('Project Directory:', bold=True)} {project_dir}")
        if config.source:
            click.echo(f"{click.style('Config:', bold=True)} {config.source}")
        if scanners:
            click.echo(f"{click.style('Scanners:', bold=True)} {', '.join(scanners)}")

    analysis = run_analysis(project_dir, config, logger, scanners, package_manager)
    suggestions = [s for s in SuggestionEngine().generate(analysis) if s.actions]
    report_engine = ReportEngine(project_dir)

    if json_output:
        click.echo(json.dumps(report_engine.to_json_dict(analysis, suggestions), indent=2))
    else:
        report_engine.print_report(analysis, suggestions)

    if output_file:
        report_engine.save_report(analysis, output_file, suggestions)

    sys.exit(1 if has_critical_findings(analysis) else 0)


@cli.command(help="Apply suggested fixes (package.json is backed up first)")
@dir_option
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Apply without asking for confirmation")
@click.option("--dry-run", is_flag=True, help="Show the fixes that would be applied and exit")
@click.option(
    "--max-risk",
    type=click.Choice([r.value for r in RiskLevel]),
    default=None,
    help="Highest risk level to apply (default: autoFix.maxRiskLevel from config, else medium)",
)
@config_option
@package_manager_option
@verbose_option
def fix(project_dir: str, assume_yes: bool, dry_run: bool, max_risk: Optional[str],
        config_file: Optional[str], package_manager: Optional[str], verbose: bool):
    """Analyze, then apply fixes up to the allowed risk level"""
    project_dir = os.path.abspath(project_dir)
    try:
        config = load_config(project_dir, config_file)
    except DepmenderError as e:
        fail(str(e))

    logger = ConsoleLogger(enabled=True, verbose=verbose)
    print_banner("🔧 Dependency Fixer")
    click.echo(f"\n{click.style('Project Directory:', bold=True)} {project_dir}")

    analysis = run_analysis(project_dir, config, logger, package_manager=package_manager)
    adapter = create_adapter(project_dir, analysis.package_manager, logger=logger)
    fixer = AutoFixer(project_dir, adapter, logger=logger)
    report_engine = ReportEngine(project_dir)

    risk_limit = RiskLevel(max_risk) if max_risk else config.auto_fix.max_risk_level
    all_fixes = fixer.generate_fixes(analysis)
    suggestions = fixer.filter_by_risk(all_fixes, risk_limit)

    skipped = len(all_fixes) - len(suggestions)
    if skipped:
        click.echo(click.style(
            f"\n⚠️  Skipping {skipped} fix(es) above {risk_limit.value} risk (use --max-risk to include them)",
            fg='yellow'))

    if not suggestions:
        click.echo(click.style("\n✓ Nothing to fix", fg='green', bold=True))
        sys.exit(0)

    report_engine.print_suggestions(suggestions)

    if dry_run:
        click.echo(click.style("\nDry run: no changes made", dim=True))
        sys.exit(0)

    if config.auto_fix.confirm_before_fix and not assume_yes:
        if not click.confirm(f"\nApply {len(suggestions)} fix(es)?", default=False):
            click.echo("Aborted.")
            sys.exit(0)

    result = asyncio.run(fixer.apply_fixes(suggestions))
    report_engine.print_fix_result(result)
    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    cli()
