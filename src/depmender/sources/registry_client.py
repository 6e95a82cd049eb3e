"""npm registry metadata client"""

from typing import Optional
from urllib.parse import quote

import httpx

from depmender.core.config import DEFAULT_REGISTRY_URL


class NpmRegistryClient:
    """
    Looks up the latest published version of packages

    Every failure (transport error, non-2xx status, malformed body)
    returns None, meaning "no information available".
    """

    def __init__(self, base_url: str = DEFAULT_REGISTRY_URL, timeout: float = 5.0,
                 transport: httpx.AsyncBaseTransport = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.transport = transport

    def client(self) -> httpx.AsyncClient:
        """New HTTP client, to be used as an async context manager"""
        return httpx.AsyncClient(timeout=self.timeout, follow_redirects=True, transport=self.transport)

    def package_url(self, name: str) -> str:
        # Scoped names keep the @ but escape the slash: @scope%2Fname
        return f"{self.base_url}/{quote(name, safe='@')}"

    async def fetch_latest_version(self, client: httpx.AsyncClient, name: str) -> Optional[str]:
        try:
            resp = await client.get(self.package_url(name), headers={'Accept': 'application/json'})
        except httpx.HTTPError:
            return None

        if not resp.is_success:
            return None

        try:
            data = resp.json()
        except ValueError:
            return None

        if not isinstance(data, dict):
            return None
        dist_tags = data.get('dist-tags')
        if not isinstance(dist_tags, dict):
            return None
        latest = dist_tags.get('latest')
        return str(latest) if latest else None
