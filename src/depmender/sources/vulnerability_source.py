"""Vulnerability advisory sources"""

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, List, Dict, Any

import httpx

from depmender.core.config import DEFAULT_ADVISORY_URL
from depmender.core.console import ConsoleLogger
from depmender.core.models import VulnerabilityInfo
from depmender.core.semver import parse_version


# Exclusive upper bounds such as "<4.17.21" (not "<=")
_UPPER_BOUND = re.compile(r'<(?!=)\s*v?(\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?)')

# Representative scores when an advisory carries a tier but no CVSS score
_SEVERITY_SCORES = {
    'critical': 9.0,
    'high': 7.0,
    'moderate': 5.0,
    'medium': 5.0,
    'low': 2.0,
}


@dataclass
class Advisory:
    """One advisory affecting a specific package version"""

    vulnerability: VulnerabilityInfo
    fixed_in: Optional[str] = None


class VulnerabilitySource(ABC):
    """Looks up advisories for installed package versions"""

    @abstractmethod
    async def fetch_advisories(self, packages: Dict[str, str]) -> Dict[str, List[Advisory]]:
        """
        Fetch advisories for a set of installed packages

        Args:
            packages: Mapping of package name to installed version

        Returns:
            Mapping of package name to its advisories. Packages without data
            may be omitted. Implementations degrade to no data on failure.
        """
        pass


def infer_fixed_version(vulnerable_versions: str, installed_version: str) -> Optional[str]:
    """
    Derive the first patched version from an advisory's vulnerable range

    Picks the lowest exclusive upper bound above the installed version,
    e.g. ">=2.0.0 <2.3.1 || >=3.0.0 <3.1.2" with 3.0.4 installed -> 3.1.2.

    Returns:
        Version string, or None when the range has no upper bound
    """
    installed = parse_version(installed_version)
    candidates = []
    for match in _UPPER_BOUND.finditer(vulnerable_versions or ''):
        bound = parse_version(match.group(1))
        if bound is None:
            continue
        if installed is None or bound > installed:
            candidates.append(bound)
    return str(min(candidates)) if candidates else None


def parse_npm_advisory(data: Dict[str, Any], installed_version: str) -> Optional[Advisory]:
    """Convert one npm bulk advisory entry, None if it is malformed"""
    if not isinstance(data, dict) or 'id' not in data:
        return None

    cvss = data.get('cvss') if isinstance(data.get('cvss'), dict) else {}
    try:
        score = float(cvss.get('score') or 0.0)
    except (TypeError, ValueError):
        score = 0.0
    if score <= 0.0:
        score = _SEVERITY_SCORES.get(str(data.get('severity', '')).lower(), 0.0)

    cwe = data.get('cwe') or []
    if isinstance(cwe, str):
        cwe = [cwe]

    title = str(data.get('title') or f"Advisory {data['id']}")
    url = data.get('url')

    vulnerability = VulnerabilityInfo(
        id=str(data['id']),
        title=title,
        description=str(data.get('overview') or data.get('description') or title),
        cvss_score=max(0.0, min(10.0, score)),
        cwe=[str(c) for c in cwe],
        references=[str(url)] if url else [],
    )
    return Advisory(
        vulnerability=vulnerability,
        fixed_in=infer_fixed_version(str(data.get('vulnerable_versions') or ''), installed_version),
    )


class NpmAdvisorySource(VulnerabilitySource):
    """
    Queries the npm bulk advisory endpoint (the API behind `npm audit`)

    Packages are sent in batches; a failed batch yields no data for its
    packages and is logged, other batches are unaffected.
    """

    def __init__(self, url: str = DEFAULT_ADVISORY_URL, timeout: float = 10.0,
                 batch_size: int = 100, concurrency: int = 4,
                 transport: httpx.AsyncBaseTransport = None, logger: ConsoleLogger = None):
        self.url = url
        self.timeout = timeout
        self.batch_size = batch_size
        self.concurrency = concurrency
        self.transport = transport
        self.logger = logger or ConsoleLogger(enabled=False)

    async def fetch_advisories(self, packages: Dict[str, str]) -> Dict[str, List[Advisory]]:
        if not packages:
            return {}

        names = sorted(packages)
        batches = [names[i:i + self.batch_size] for i in range(0, len(names), self.batch_size)]
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _fetch_batch(client: httpx.AsyncClient, batch: List[str]) -> Dict[str, List[Advisory]]:
            async with semaphore:
                return await self._post_batch(client, {name: packages[name] for name in batch})

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            batch_results = await asyncio.gather(*[_fetch_batch(client, b) for b in batches])

        results: Dict[str, List[Advisory]] = {}
        for batch_result in batch_results:
            results.update(batch_result)
        return results

    async def _post_batch(self, client: httpx.AsyncClient, batch: Dict[str, str]) -> Dict[str, List[Advisory]]:
        payload = {name: [version] for name, version in batch.items()}
        try:
            resp = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            self.logger.warning(f"Advisory lookup failed: {e}")
            return {}

        if not resp.is_success:
            self.logger.warning(f"Advisory lookup returned HTTP {resp.status_code}")
            return {}

        try:
            data = resp.json()
        except ValueError:
            self.logger.warning("Advisory lookup returned an unparsable body")
            return {}

        if not isinstance(data, dict):
            return {}

        results = {}
        for name, entries in data.items():
            if name not in batch or not isinstance(entries, list):
                continue
            advisories = [parse_npm_advisory(entry, batch[name]) for entry in entries]
            results[name] = [a for a in advisories if a is not None]
        return results
