"""Remote data sources: package registry and vulnerability advisories"""

from .registry_client import NpmRegistryClient
from .vulnerability_source import Advisory, NpmAdvisorySource, VulnerabilitySource

__all__ = [
    'NpmRegistryClient',
    'Advisory',
    'VulnerabilitySource',
    'NpmAdvisorySource',
]
