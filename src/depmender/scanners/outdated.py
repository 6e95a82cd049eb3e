"""Scanner for installed packages behind the latest published release"""

import asyncio
from typing import Dict, Optional

import httpx

from depmender.core.console import ConsoleLogger
from depmender.core.models import DependencyIssue, InstalledPackage, IssueSeverity, ScanResult, ScannerKind
from depmender.core.semver import parse_range, parse_version, version_diff
from depmender.sources import NpmRegistryClient

from .base import BaseDependencyScanner
from .context import ScanContext


DIFF_SEVERITY = {
    'major': IssueSeverity.HIGH,
    'minor': IssueSeverity.MEDIUM,
    'patch': IssueSeverity.LOW,
    'prerelease': IssueSeverity.LOW,
}

_ESCALATION = {
    IssueSeverity.LOW: IssueSeverity.MEDIUM,
    IssueSeverity.MEDIUM: IssueSeverity.HIGH,
    IssueSeverity.HIGH: IssueSeverity.CRITICAL,
    IssueSeverity.CRITICAL: IssueSeverity.CRITICAL,
}


class OutdatedScanner(BaseDependencyScanner):
    """
    Compares installed versions with the registry's `latest` dist-tag

    Latest versions are cached per package name for the lifetime of the
    scanner instance; only successful lookups are cached. Registry
    failures mean no issue for that package.
    """

    def __init__(self, registry_client: NpmRegistryClient = None, concurrency: int = 10,
                 logger: ConsoleLogger = None):
        super().__init__(logger)
        self.registry_client = registry_client or NpmRegistryClient()
        self.concurrency = concurrency
        self._cache: Dict[str, str] = {}
        self.cache_hits = 0
        self.cache_misses = 0

    def get_kind(self) -> ScannerKind:
        return ScannerKind.OUTDATED

    def clear_cache(self):
        self._cache.clear()
        self.cache_hits = 0
        self.cache_misses = 0

    def get_cache_stats(self) -> Dict[str, int]:
        return {'size': len(self._cache), 'hits': self.cache_hits, 'misses': self.cache_misses}

    async def get_latest_version(self, client: httpx.AsyncClient, name: str) -> Optional[str]:
        if name in self._cache:
            self.cache_hits += 1
            return self._cache[name]

        self.cache_misses += 1
        latest = await self.registry_client.fetch_latest_version(client, name)
        if latest is not None:
            self._cache[name] = latest
        else:
            self.logger.debug(f"No registry data for {name}")
        return latest

    async def scan(self, context: ScanContext) -> ScanResult:
        candidates = [
            (pkg, declared) for pkg, declared in context.installed_declared()
            if parse_version(pkg.version) is not None
        ]
        if not candidates:
            return self._result()

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _check_one(client: httpx.AsyncClient, pkg: InstalledPackage, declared: str):
            async with semaphore:
                latest = await self.get_latest_version(client, pkg.name)
            if latest is None:
                return None
            return self._compare(pkg, declared, latest)

        async with self.registry_client.client() as client:
            results = await asyncio.gather(*[_check_one(client, pkg, d) for pkg, d in candidates])

        return self._result([issue for issue in results if issue is not None])

    def _compare(self, pkg: InstalledPackage, declared: str, latest: str) -> Optional[DependencyIssue]:
        installed_version = parse_version(pkg.version)
        latest_version = parse_version(latest)
        if installed_version is None or latest_version is None or installed_version >= latest_version:
            return None

        diff = version_diff(installed_version, latest_version)
        severity = DIFF_SEVERITY.get(diff, IssueSeverity.LOW)
        description = f"{pkg.name} is outdated: {pkg.version} installed, {latest} available ({diff} update)"

        npm_spec = parse_range(declared)
        if npm_spec is not None and not npm_spec.match(latest_version):
            # Reaching latest needs a manifest change, not just an install
            severity = _ESCALATION[severity]
            description += f", outside declared range {declared}"

        return self._issue(
            package_name=pkg.name,
            severity=severity,
            description=description,
            fixable=True,
            current_version=pkg.version,
            expected_version=declared,
            latest_version=latest,
        )
