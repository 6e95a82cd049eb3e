"""Applies fix suggestions with manifest backup and rollback"""

import shutil
from datetime import datetime
from pathlib import Path
from typing import List

from depmender.adapters import PackageManagerAdapter
from depmender.core.console import ConsoleLogger
from depmender.core.errors import BackupError
from depmender.core.models import (
    AnalysisResult, BackupInfo, FixAction, FixActionKind, FixApplicationResult,
    FixSuggestion, RiskLevel, severity_rank,
)

from .suggestion_engine import SuggestionEngine


class AutoFixer:
    """
    Generates and applies fixes for one project

    apply_fixes() always snapshots package.json first, applies suggestions
    strictly in order, collects adapter errors instead of raising them, and
    restores the snapshot when a critical-risk suggestion fails. The backup
    file is left on disk afterwards for manual recovery.
    """

    def __init__(self, project_path, adapter: PackageManagerAdapter, logger: ConsoleLogger = None,
                 suggestion_engine: SuggestionEngine = None):
        self.project_path = Path(project_path)
        self.adapter = adapter
        self.logger = logger or ConsoleLogger(enabled=False)
        self.suggestion_engine = suggestion_engine or SuggestionEngine()

    @property
    def manifest_path(self) -> Path:
        return self.project_path / 'package.json'

    def generate_fixes(self, analysis: AnalysisResult) -> List[FixSuggestion]:
        """Actionable suggestions for an analysis, security fixes first"""
        return [s for s in self.suggestion_engine.generate(analysis) if s.actions]

    def get_advisories(self, analysis: AnalysisResult) -> List[FixSuggestion]:
        """Suggestions that need manual attention (no automatic action)"""
        return [s for s in self.suggestion_engine.generate(analysis) if not s.actions]

    @staticmethod
    def filter_by_risk(suggestions: List[FixSuggestion], max_risk: RiskLevel) -> List[FixSuggestion]:
        limit = severity_rank(max_risk)
        return [s for s in suggestions if severity_rank(s.risk) <= limit]

    def create_backup(self) -> BackupInfo:
        """
        Copy package.json to a timestamped backup next to it

        Raises:
            BackupError: If the manifest cannot be copied
        """
        now = datetime.now()
        timestamp = now.strftime('%Y%m%dT%H%M%S%f')
        backup_path = self.manifest_path.with_name(f"package.json.backup.{timestamp}")
        counter = 1
        while backup_path.exists():
            backup_path = self.manifest_path.with_name(f"package.json.backup.{timestamp}.{counter}")
            counter += 1

        try:
            shutil.copy2(self.manifest_path, backup_path)
        except OSError as e:
            raise BackupError(f"Could not back up {self.manifest_path}: {e}") from e

        self.logger.debug(f"Backed up {self.manifest_path} to {backup_path}")
        return BackupInfo(
            original_path=str(self.manifest_path),
            backup_path=str(backup_path),
            timestamp=now.isoformat(),
        )

    def restore_backup(self, backup: BackupInfo):
        """
        Copy a backup over the original manifest

        Raises:
            BackupError: If the backup cannot be restored
        """
        try:
            shutil.copy2(backup.backup_path, backup.original_path)
        except OSError as e:
            raise BackupError(f"Could not restore {backup.original_path} from {backup.backup_path}: {e}") from e

    async def apply_fixes(self, suggestions: List[FixSuggestion]) -> FixApplicationResult:
        """
        Apply suggestions in order

        Args:
            suggestions: Suggestions to apply, in the order given

        Returns:
            FixApplicationResult; success is True only when no errors occurred
        """
        result = FixApplicationResult(success=False)

        try:
            result.backup = self.create_backup()
        except BackupError as e:
            result.errors.append(str(e))
            self.logger.error(str(e))
            return result

        for suggestion in suggestions:
            try:
                for action in suggestion.actions:
                    await self._apply_action(action)
            except Exception as e:
                message = f"{suggestion.description}: {e}"
                result.errors.append(message)
                self.logger.error(message)

                if suggestion.risk == RiskLevel.CRITICAL:
                    self._rollback(result)
                    break
                continue

            result.applied_fixes.append(suggestion)
            self.logger.success(suggestion.description)

        result.success = not result.errors
        return result

    def _rollback(self, result: FixApplicationResult):
        try:
            self.restore_backup(result.backup)
        except BackupError as e:
            result.errors.append(f"Rollback failed: {e}")
            self.logger.error(f"Rollback failed: {e}")
            return
        result.rolled_back = True
        self.logger.warning(f"Critical fix failed, restored package.json from {result.backup.backup_path}")

    async def _apply_action(self, action: FixAction):
        if action.kind == FixActionKind.REGENERATE_LOCKFILE:
            await self.adapter.regenerate_lockfile()
            return

        if not action.package_name:
            raise ValueError(f"{action.kind.value} action needs a package name")

        if action.kind == FixActionKind.INSTALL:
            await self.adapter.install_package(action.package_name, action.version)
        elif action.kind == FixActionKind.UPDATE:
            if not action.version:
                raise ValueError(f"update action for {action.package_name} needs a version")
            await self.adapter.update_package(action.package_name, action.version)
        else:
            raise ValueError(f"Unknown fix action: {action.kind}")
