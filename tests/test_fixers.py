"""Unit tests for SuggestionEngine and AutoFixer."""

import json
import os
from unittest.mock import AsyncMock

import pytest

from depmender.adapters import NpmAdapter
from depmender.core.errors import AdapterError
from depmender.core.models import (
    AnalysisResult, DependencyIssue, FixAction, FixActionKind, FixKind, FixSuggestion, IssueKind,
    IssueSeverity, PackageManagerType, ProjectInfo, RiskLevel, SecurityIssue, SecuritySeverity,
    VulnerabilityInfo,
)
from depmender.fixers import AutoFixer, ConflictResolver, SuggestionEngine, update_risk


def make_analysis(issues=(), vulnerabilities=()):
    return AnalysisResult(
        health_score=50,
        issues=list(issues),
        security_vulnerabilities=list(vulnerabilities),
        package_manager=PackageManagerType.NPM,
        project_info=ProjectInfo(name='app', version='1.0.0', path='.', package_manager=PackageManagerType.NPM),
    )


def make_vuln(name, version, vuln_id, severity, fixed_in=None, cvss=7.5):
    return SecurityIssue(
        package_name=name,
        version=version,
        vulnerability=VulnerabilityInfo(id=vuln_id, title='vuln', description='vuln', cvss_score=cvss),
        severity=severity,
        fixed_in=fixed_in,
        patch_available=fixed_in is not None,
    )


def issue(kind, name, severity=IssueSeverity.MEDIUM, fixable=True, **versions):
    return DependencyIssue(kind=kind, package_name=name, severity=severity,
                           description=f"{name} {kind.value}", fixable=fixable, **versions)


def make_fixer(project_dir):
    adapter = NpmAdapter(project_dir)
    adapter.install_package = AsyncMock()
    adapter.update_package = AsyncMock()
    adapter.regenerate_lockfile = AsyncMock()
    return AutoFixer(project_dir, adapter)


def backups_in(project_dir):
    return [f for f in os.listdir(project_dir) if f.startswith('package.json.backup.')]


@pytest.mark.parametrize('current, target, expected', [
    ('1.0.0', '1.0.1', RiskLevel.LOW),
    ('1.0.0', '1.3.0', RiskLevel.LOW),
    ('0.1.0', '0.2.0', RiskLevel.MEDIUM),
    ('1.0.0', '2.0.0', RiskLevel.HIGH),
    ('1.2.0', '1.1.0', RiskLevel.MEDIUM),
    ('2.0.0', '1.9.0', RiskLevel.HIGH),
    ('1.0.0', '1.0.0', RiskLevel.LOW),
    (None, '1.0.0', RiskLevel.MEDIUM),
    ('1.0.0', 'latest', RiskLevel.MEDIUM),
])
def test_update_risk(current, target, expected):
    assert update_risk(current, target) == expected


def test_security_suggestion_targets_highest_fix():
    """Test one update per vulnerable package covering every patched advisory."""
    analysis = make_analysis(
        issues=[issue(IssueKind.OUTDATED, 'lodash', current_version='4.17.15', latest_version='4.17.21')],
        vulnerabilities=[
            make_vuln('lodash', '4.17.15', 'GHSA-a', SecuritySeverity.CRITICAL, '4.17.21'),
            make_vuln('lodash', '4.17.15', 'GHSA-b', SecuritySeverity.HIGH, '4.17.19'),
        ],
    )

    suggestions = SuggestionEngine().generate(analysis)

    assert len(suggestions) == 1
    suggestion = suggestions[0]
    assert suggestion.kind == FixKind.UPDATE_OUTDATED
    assert suggestion.risk == RiskLevel.LOW
    assert suggestion.actions == [FixAction(FixActionKind.UPDATE, 'lodash', '4.17.21')]
    assert 'GHSA-a' in suggestion.description and 'GHSA-b' in suggestion.description


def test_unpatched_critical_vulnerability():
    """Test advisories without a fix, and critical grading of other fixes for that package."""
    analysis = make_analysis(
        issues=[issue(IssueKind.MISSING, 'evil-pkg', expected_version='^1.0.0')],
        vulnerabilities=[make_vuln('evil-pkg', '1.0.0', 'GHSA-x', SecuritySeverity.CRITICAL, cvss=9.8)],
    )

    suggestions = SuggestionEngine().generate(analysis)

    advisory, install = suggestions
    assert advisory.kind == FixKind.RESOLVE_CONFLICT
    assert advisory.actions == []
    assert advisory.risk == RiskLevel.CRITICAL
    assert install.kind == FixKind.INSTALL_MISSING
    assert install.risk == RiskLevel.CRITICAL


def test_issue_suggestions():
    """Test suggestions for each issue kind."""
    analysis = make_analysis(issues=[
        issue(IssueKind.MISSING, 'react', expected_version='^18.0.0'),
        issue(IssueKind.OUTDATED, 'express', current_version='4.18.2', latest_version='5.0.1'),
        issue(IssueKind.VERSION_MISMATCH, 'axios', current_version='0.27.0', expected_version='^1.4.0'),
        issue(IssueKind.VERSION_MISMATCH, 'chalk', current_version='5.3.0', expected_version='^4.1.0'),
        issue(IssueKind.PEER_CONFLICT, 'react-dom', expected_version='^18.0.0'),
        issue(IssueKind.BROKEN, 'left-pad'),
        issue(IssueKind.BROKEN, 'is-odd'),
        issue(IssueKind.PEER_CONFLICT, 'vue', fixable=False, expected_version='^2.0.0 AND ^3.0.0'),
    ])

    suggestions = {s.description: s for s in SuggestionEngine().generate(analysis)}
    by_package = {}
    for s in suggestions.values():
        for action in s.actions:
            by_package[action.package_name] = s

    assert by_package['react'].kind == FixKind.INSTALL_MISSING
    assert by_package['react'].risk == RiskLevel.LOW
    assert by_package['express'].risk == RiskLevel.HIGH
    assert by_package['express'].actions[0].version == '5.0.1'
    assert by_package['axios'].kind == FixKind.UPDATE_OUTDATED
    assert by_package['axios'].actions[0] == FixAction(FixActionKind.UPDATE, 'axios', '^1.4.0')
    assert by_package['chalk'].kind == FixKind.RESOLVE_CONFLICT
    assert by_package['chalk'].risk == RiskLevel.HIGH
    assert by_package['react-dom'].actions[0].kind == FixActionKind.INSTALL
    assert 'vue' not in by_package
    vue = next(s for s in suggestions.values() if s.description.startswith("No single version of vue"))
    assert "^2.0.0 and ^3.0.0" in vue.description
    assert vue.actions == []
    assert vue.risk == RiskLevel.HIGH

    regenerate = by_package[None]
    assert regenerate.kind == FixKind.REGENERATE_LOCKFILE
    assert regenerate.risk == RiskLevel.MEDIUM
    assert 'is-odd, left-pad' in regenerate.description
    assert len(suggestions) == 7


@pytest.mark.parametrize('ranges, expected', [
    (['^18.0.0'], '^18.0.0'),
    (['^18.0.0', '>=18.2.0'], '^18.0.0 >=18.2.0'),
    (['^16.8.0', '>=16.0.0'], '^16.8.0 >=16.0.0'),
    (['^16.0.0', '^18.0.0'], None),
    # Alternatives cannot be intersected, the highest common version is used
    (['^16.0.0 || ^17.0.0', '>=17.0.0'], '17.5.2'),
    (['^1.0.0', 'latest'], '^1.0.0'),
    (['next', 'latest'], None),
])
def test_find_unified_version(ranges, expected):
    assert ConflictResolver().find_unified_version(ranges) == expected


def test_peer_conflicts_unified_install():
    """Test one install satisfying every requirer of a missing peer."""
    analysis = make_analysis(issues=[
        issue(IssueKind.PEER_CONFLICT, 'react', IssueSeverity.HIGH, expected_version='^18.0.0 AND >=18.2.0'),
    ])

    suggestions = SuggestionEngine().generate(analysis)

    assert len(suggestions) == 1
    suggestion = suggestions[0]
    assert suggestion.kind == FixKind.RESOLVE_CONFLICT
    assert suggestion.risk == RiskLevel.MEDIUM
    assert suggestion.description == ("Install unified peer dependency react@^18.0.0 >=18.2.0 "
                                      "to resolve all conflicts")
    assert suggestion.actions == [FixAction(FixActionKind.INSTALL, 'react', '^18.0.0 >=18.2.0')]


def test_peer_conflicts_merge_ranges_across_issues():
    """Test that an installed peer is moved to a version every requirer accepts."""
    analysis = make_analysis(issues=[
        issue(IssueKind.PEER_CONFLICT, 'react', IssueSeverity.HIGH,
              current_version='17.0.2', expected_version='^18.0.0'),
        issue(IssueKind.PEER_CONFLICT, 'react', IssueSeverity.MEDIUM,
              current_version='17.0.2', expected_version='>=18.2.0'),
    ])

    suggestions = SuggestionEngine().generate(analysis)

    assert len(suggestions) == 1
    assert suggestions[0].kind == FixKind.UPDATE_OUTDATED
    assert suggestions[0].risk == RiskLevel.HIGH
    assert suggestions[0].actions == [FixAction(FixActionKind.INSTALL, 'react', '^18.0.0 >=18.2.0')]


def test_peer_conflict_outside_grid_gets_unified_install():
    """Test that ranges the scanner could not reconcile still get a unified version when one exists."""
    analysis = make_analysis(issues=[
        issue(IssueKind.PEER_CONFLICT, 'react', IssueSeverity.HIGH, fixable=False,
              expected_version='^16.8.0 AND >=16.0.0'),
    ])

    suggestion, = SuggestionEngine().generate(analysis)

    assert suggestion.actions == [FixAction(FixActionKind.INSTALL, 'react', '^16.8.0 >=16.0.0')]


def test_peer_conflicts_without_common_version_are_advisories(temp_project_dir):
    """Test that a fixable peer issue is not installed at a range another requirer rejects."""
    analysis = make_analysis(issues=[
        issue(IssueKind.PEER_CONFLICT, 'react', IssueSeverity.CRITICAL, expected_version='^16.0.0 AND ^18.0.0'),
    ])
    fixer = make_fixer(temp_project_dir)

    assert fixer.generate_fixes(analysis) == []
    advisory, = fixer.get_advisories(analysis)
    assert advisory.kind == FixKind.RESOLVE_CONFLICT
    assert advisory.actions == []
    assert advisory.risk == RiskLevel.HIGH
    assert 'react' in advisory.description


def test_generate_fixes_excludes_advisories(temp_project_dir):
    """Test that only actionable suggestions are returned as fixes."""
    analysis = make_analysis(vulnerabilities=[
        make_vuln('a', '1.0.0', 'GHSA-1', SecuritySeverity.HIGH),
        make_vuln('b', '1.0.0', 'GHSA-2', SecuritySeverity.HIGH, '1.0.1'),
    ])
    fixer = make_fixer(temp_project_dir)

    assert [s.actions[0].package_name for s in fixer.generate_fixes(analysis)] == ['b']
    assert len(fixer.get_advisories(analysis)) == 1


def test_filter_by_risk():
    suggestions = [FixSuggestion(FixKind.INSTALL_MISSING, r.value, r) for r in RiskLevel]

    kept = AutoFixer.filter_by_risk(suggestions, RiskLevel.MEDIUM)

    assert [s.risk for s in kept] == [RiskLevel.LOW, RiskLevel.MEDIUM]


@pytest.mark.asyncio
async def test_apply_fixes_success(make_project):
    """Test applying fixes in order with an unconditional backup."""
    project_dir = make_project(dependencies={'lodash': '^4.17.0'})
    with open(os.path.join(project_dir, 'package.json')) as f:
        original = f.read()
    fixer = make_fixer(project_dir)
    suggestions = [
        FixSuggestion(FixKind.UPDATE_OUTDATED, 'update lodash', RiskLevel.LOW,
                      [FixAction(FixActionKind.UPDATE, 'lodash', '4.17.21')]),
        FixSuggestion(FixKind.INSTALL_MISSING, 'install react', RiskLevel.LOW,
                      [FixAction(FixActionKind.INSTALL, 'react', '^18.0.0')]),
        FixSuggestion(FixKind.REGENERATE_LOCKFILE, 'regenerate', RiskLevel.MEDIUM,
                      [FixAction(FixActionKind.REGENERATE_LOCKFILE)]),
    ]

    result = await fixer.apply_fixes(suggestions)

    assert result.success
    assert result.errors == []
    assert result.applied_fixes == suggestions
    assert not result.rolled_back
    fixer.adapter.update_package.assert_awaited_once_with('lodash', '4.17.21')
    fixer.adapter.install_package.assert_awaited_once_with('react', '^18.0.0')
    fixer.adapter.regenerate_lockfile.assert_awaited_once()
    with open(result.backup.backup_path) as f:
        assert f.read() == original
    assert len(backups_in(project_dir)) == 1


@pytest.mark.asyncio
async def test_apply_fixes_with_no_suggestions_still_backs_up(make_project):
    project_dir = make_project()

    result = await make_fixer(project_dir).apply_fixes([])

    assert result.success
    assert result.backup is not None
    assert len(backups_in(project_dir)) == 1


@pytest.mark.asyncio
async def test_non_critical_failure_continues(make_project):
    """Test that a failing low-risk fix is recorded and later fixes still run."""
    project_dir = make_project()
    fixer = make_fixer(project_dir)
    fixer.adapter.install_package.side_effect = [
        AdapterError('npm install failed', command=['npm', 'install', 'ghost'], returncode=1), None,
    ]
    first = FixSuggestion(FixKind.INSTALL_MISSING, 'install ghost', RiskLevel.LOW,
                          [FixAction(FixActionKind.INSTALL, 'ghost', '^1.0.0')])
    second = FixSuggestion(FixKind.INSTALL_MISSING, 'install react', RiskLevel.LOW,
                           [FixAction(FixActionKind.INSTALL, 'react', '^18.0.0')])

    result = await fixer.apply_fixes([first, second])

    assert not result.success
    assert result.applied_fixes == [second]
    assert len(result.errors) == 1
    assert result.errors[0].startswith('install ghost: ')
    assert not result.rolled_back


@pytest.mark.asyncio
async def test_critical_failure_rolls_back(make_project):
    """Test that a failing critical fix restores package.json and stops."""
    project_dir = make_project(dependencies={'lodash': '^4.17.0'})
    manifest_path = os.path.join(project_dir, 'package.json')
    with open(manifest_path) as f:
        original = f.read()
    fixer = make_fixer(project_dir)

    async def clobber_and_fail(name, version):
        with open(manifest_path, 'w') as f:
            json.dump({'name': 'half-written'}, f)
        raise AdapterError('npm install failed', returncode=1)

    fixer.adapter.update_package.side_effect = clobber_and_fail
    applied = FixSuggestion(FixKind.INSTALL_MISSING, 'install react', RiskLevel.LOW,
                            [FixAction(FixActionKind.INSTALL, 'react', '^18.0.0')])
    critical = FixSuggestion(FixKind.UPDATE_OUTDATED, 'update lodash', RiskLevel.CRITICAL,
                             [FixAction(FixActionKind.UPDATE, 'lodash', '4.17.21')])
    never = FixSuggestion(FixKind.INSTALL_MISSING, 'install vue', RiskLevel.LOW,
                          [FixAction(FixActionKind.INSTALL, 'vue', '^3.0.0')])

    result = await fixer.apply_fixes([applied, critical, never])

    assert not result.success
    assert result.rolled_back
    assert result.applied_fixes == [applied]
    assert fixer.adapter.install_package.await_count == 1
    with open(manifest_path) as f:
        assert f.read() == original
    assert os.path.exists(result.backup.backup_path)


@pytest.mark.asyncio
async def test_backup_failure_attempts_nothing(temp_project_dir):
    """Test that without a manifest to back up no fix is attempted."""
    fixer = make_fixer(temp_project_dir)
    suggestion = FixSuggestion(FixKind.INSTALL_MISSING, 'install react', RiskLevel.LOW,
                               [FixAction(FixActionKind.INSTALL, 'react', '^18.0.0')])

    result = await fixer.apply_fixes([suggestion])

    assert not result.success
    assert result.backup is None
    assert 'Could not back up' in result.errors[0]
    fixer.adapter.install_package.assert_not_awaited()


@pytest.mark.asyncio
async def test_invalid_action_is_reported(make_project):
    """Test that malformed actions become errors instead of exceptions."""
    fixer = make_fixer(make_project())
    suggestion = FixSuggestion(FixKind.UPDATE_OUTDATED, 'update nothing', RiskLevel.LOW,
                               [FixAction(FixActionKind.UPDATE, 'lodash')])

    result = await fixer.apply_fixes([suggestion])

    assert result.errors == ['update nothing: update action for lodash needs a version']


def test_backup_names_do_not_collide(make_project):
    project_dir = make_project()
    fixer = make_fixer(project_dir)

    first = fixer.create_backup()
    second = fixer.create_backup()

    assert first.backup_path != second.backup_path
    assert len(backups_in(project_dir)) == 2
