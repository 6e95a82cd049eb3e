"""Scanner registry running scanners concurrently with per-scanner isolation"""

import asyncio
from typing import Dict, Iterable, List

from depmender.core.console import ConsoleLogger
from depmender.core.errors import DuplicateScannerError, ScannerNotRegisteredError
from depmender.core.models import ScanResult, ScannerKind

from .base import BaseDependencyScanner
from .context import ScanContext


class ScannerRegistry:
    """Holds at most one scanner per ScannerKind"""

    def __init__(self, logger: ConsoleLogger = None):
        self.logger = logger or ConsoleLogger(enabled=False)
        self._scanners: Dict[ScannerKind, BaseDependencyScanner] = {}

    def register(self, scanner: BaseDependencyScanner):
        """
        Add a scanner

        Raises:
            DuplicateScannerError: If a scanner of the same kind is registered
        """
        kind = scanner.get_kind()
        if kind in self._scanners:
            raise DuplicateScannerError(f"Scanner for '{kind.value}' is already registered")
        self._scanners[kind] = scanner

    def unregister(self, kind: ScannerKind) -> bool:
        return self._scanners.pop(ScannerKind(kind), None) is not None

    def get(self, kind: ScannerKind) -> BaseDependencyScanner:
        try:
            return self._scanners[ScannerKind(kind)]
        except (KeyError, ValueError):
            raise ScannerNotRegisteredError(f"No scanner registered for '{getattr(kind, 'value', kind)}'")

    def has(self, kind: ScannerKind) -> bool:
        try:
            return ScannerKind(kind) in self._scanners
        except ValueError:
            return False

    def kinds(self) -> List[ScannerKind]:
        return list(self._scanners)

    def __len__(self):
        return len(self._scanners)

    async def run_all(self, context: ScanContext) -> List[ScanResult]:
        """Run every registered scanner concurrently"""
        return await self._run_scanners(list(self._scanners.values()), context)

    async def run(self, kinds: Iterable[ScannerKind], context: ScanContext) -> List[ScanResult]:
        """
        Run the requested scanners concurrently

        Raises:
            ScannerNotRegisteredError: If any requested kind is not registered,
                checked before any scanner starts
        """
        selected = []
        for kind in kinds:
            scanner = self.get(kind)
            if scanner not in selected:
                selected.append(scanner)
        return await self._run_scanners(selected, context)

    async def _run_scanners(self, scanners: List[BaseDependencyScanner], context: ScanContext) -> List[ScanResult]:
        results = await asyncio.gather(*[self._run_isolated(s, context) for s in scanners])
        # Empty results carry no information
        return [r for r in results if not r.is_empty()]

    async def _run_isolated(self, scanner: BaseDependencyScanner, context: ScanContext) -> ScanResult:
        kind = scanner.get_kind()
        try:
            result = await scanner.scan(context)
        except Exception as e:
            self.logger.warning(f"{kind.value} scanner failed: {e}")
            return ScanResult(scanner_kind=kind)

        self.logger.debug(
            f"{kind.value}: {len(result.issues)} issue(s), {len(result.security_issues)} vulnerability(ies)")
        return result
