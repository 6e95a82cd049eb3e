"""Core models, configuration and console output"""

from .config import DepmenderConfig, load_config
from .console import ConsoleLogger
from .errors import (
    AdapterError, BackupError, ConfigError, DepmenderError, DuplicateScannerError,
    LockfileError, ManifestError, ProjectNotFoundError, ScannerNotRegisteredError,
)
from .models import (
    AnalysisResult, DependencyIssue, FixSuggestion, FixApplicationResult, IssueKind,
    IssueSeverity, RiskLevel, ScannerKind, SecurityIssue, SecuritySeverity,
)
from .report_engine import ReportEngine

__all__ = [
    'AnalysisResult',
    'DependencyIssue',
    'SecurityIssue',
    'FixSuggestion',
    'FixApplicationResult',
    'IssueKind',
    'IssueSeverity',
    'SecuritySeverity',
    'ScannerKind',
    'RiskLevel',
    'ConsoleLogger',
    'DepmenderConfig',
    'load_config',
    'ReportEngine',
    'DepmenderError',
    'ProjectNotFoundError',
    'ManifestError',
    'LockfileError',
    'ConfigError',
    'AdapterError',
    'BackupError',
    'DuplicateScannerError',
    'ScannerNotRegisteredError',
]
