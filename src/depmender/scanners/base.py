"""Base scanner interface"""

from abc import ABC, abstractmethod
from typing import Optional

from depmender.core.console import ConsoleLogger
from depmender.core.models import (
    DependencyIssue, IssueSeverity, ScanResult, ScannerKind, SCANNER_ISSUE_KINDS,
)

from .context import ScanContext


class BaseDependencyScanner(ABC):
    """
    Base class for dependency scanners

    A scanner looks at one ScanContext and reports the issues of its own
    kind. Scanners never mutate the context; I/O failures are turned into
    issues or "no data", not exceptions.
    """

    def __init__(self, logger: ConsoleLogger = None):
        self.logger = logger or ConsoleLogger(enabled=False)

    @abstractmethod
    def get_kind(self) -> ScannerKind:
        """
        Return scanner identifier

        Returns:
            ScannerKind
        """
        pass

    @abstractmethod
    async def scan(self, context: ScanContext) -> ScanResult:
        """
        Scan one project

        Args:
            context: Read-only project snapshot

        Returns:
            ScanResult for this scanner's kind
        """
        pass

    def _result(self, issues=None, security_issues=None) -> ScanResult:
        return ScanResult(
            scanner_kind=self.get_kind(),
            issues=list(issues or []),
            security_issues=list(security_issues or []),
        )

    def _issue(self, package_name: str, severity: IssueSeverity, description: str, fixable: bool = True,
               current_version: Optional[str] = None, expected_version: Optional[str] = None,
               latest_version: Optional[str] = None) -> DependencyIssue:
        return DependencyIssue(
            kind=SCANNER_ISSUE_KINDS[self.get_kind()],
            package_name=package_name,
            severity=severity,
            description=description,
            fixable=fixable,
            current_version=current_version,
            expected_version=expected_version,
            latest_version=latest_version,
        )
