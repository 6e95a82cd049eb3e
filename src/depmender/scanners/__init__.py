"""Dependency scanners and the registry that runs them"""

from depmender.core.config import DepmenderConfig
from depmender.sources import NpmAdvisorySource, NpmRegistryClient

from .base import BaseDependencyScanner
from .broken import BrokenScanner
from .context import ScanContext, ScanContextFactory
from .missing import MissingScanner
from .outdated import OutdatedScanner
from .peer_conflict import PeerConflictScanner
from .registry import ScannerRegistry
from .security import SecurityScanner
from .version_mismatch import VersionMismatchScanner

__all__ = [
    'BaseDependencyScanner',
    'ScanContext',
    'ScanContextFactory',
    'ScannerRegistry',
    'MissingScanner',
    'OutdatedScanner',
    'VersionMismatchScanner',
    'BrokenScanner',
    'PeerConflictScanner',
    'SecurityScanner',
    'create_default_registry',
]


def create_default_registry(config=None, logger=None) -> ScannerRegistry:
    """
    Registry with all six scanners, wired to the configured registry URLs

    Args:
        config: Optional DepmenderConfig
        logger: Optional ConsoleLogger

    Returns:
        ScannerRegistry
    """
    config = config or DepmenderConfig()
    registry = ScannerRegistry(logger=logger)

    registry.register(MissingScanner(logger=logger))
    registry.register(OutdatedScanner(
        NpmRegistryClient(config.registry.url, timeout=config.registry.timeout),
        concurrency=config.registry.concurrency,
        logger=logger,
    ))
    registry.register(VersionMismatchScanner(logger=logger))
    registry.register(BrokenScanner(logger=logger))
    registry.register(PeerConflictScanner(logger=logger))
    registry.register(SecurityScanner(
        NpmAdvisorySource(config.registry.advisory_url, timeout=max(config.registry.timeout, 10.0),
                          logger=logger),
        logger=logger,
    ))
    return registry
