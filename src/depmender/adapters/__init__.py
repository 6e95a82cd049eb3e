"""Package manager adapters"""

from depmender.core.models import PackageManagerType

from .base import PackageManagerAdapter
from .detector import detect_package_manager
from .npm_adapter import NpmAdapter
from .pnpm_adapter import PnpmAdapter
from .yarn_adapter import YarnAdapter

__all__ = [
    'PackageManagerAdapter',
    'NpmAdapter',
    'YarnAdapter',
    'PnpmAdapter',
    'detect_package_manager',
    'create_adapter',
]

# Registry of available adapters
ADAPTER_REGISTRY = {
    PackageManagerType.NPM: NpmAdapter,
    PackageManagerType.YARN: YarnAdapter,
    PackageManagerType.PNPM: PnpmAdapter,
}


def get_adapter_class(manager):
    """
    Get adapter class for a package manager

    Args:
        manager: PackageManagerType or its name (npm, yarn, pnpm)

    Returns:
        Adapter class or None if not found
    """
    try:
        return ADAPTER_REGISTRY.get(PackageManagerType(str(getattr(manager, 'value', manager)).lower()))
    except ValueError:
        return None


def get_available_package_managers():
    return [m.value for m in ADAPTER_REGISTRY]


def create_adapter(project_path, manager=None, logger=None) -> PackageManagerAdapter:
    """
    Create the adapter for a project, detecting the package manager if not given

    Raises:
        ValueError: If an unknown package manager is requested
    """
    manager = manager or detect_package_manager(project_path)
    adapter_class = get_adapter_class(manager)
    if adapter_class is None:
        raise ValueError(
            f"Unknown package manager: {manager} (available: {', '.join(get_available_package_managers())})")
    return adapter_class(project_path, logger=logger)
