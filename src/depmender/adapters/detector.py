"""Package manager detection for a project directory"""

import json
from pathlib import Path

from depmender.core.models import PackageManagerType


# Checked in order, first hit wins
LOCKFILE_INDICATORS = [
    ('pnpm-lock.yaml', PackageManagerType.PNPM),
    ('yarn.lock', PackageManagerType.YARN),
    ('package-lock.json', PackageManagerType.NPM),
]

CONFIG_INDICATORS = [
    ('pnpm-workspace.yaml', PackageManagerType.PNPM),
    ('.yarnrc', PackageManagerType.YARN),
    ('.yarnrc.yml', PackageManagerType.YARN),
    ('.npmrc', PackageManagerType.NPM),
]


def detect_package_manager(project_path) -> PackageManagerType:
    """
    Detect which package manager a project uses

    Priority:
    1. Lockfiles (pnpm-lock.yaml > yarn.lock > package-lock.json)
    2. Package manager config files
    3. The package.json "packageManager" field (e.g. "pnpm@8.6.0")
    4. A "workspaces" field implies yarn
    5. npm

    Args:
        project_path: Project root directory

    Returns:
        PackageManagerType
    """
    root = Path(project_path)

    for file_name, manager in LOCKFILE_INDICATORS + CONFIG_INDICATORS:
        if (root / file_name).is_file():
            return manager

    try:
        with open(root / 'package.json', 'r', encoding='utf-8') as f:
            package_data = json.load(f)
    except (OSError, ValueError):
        return PackageManagerType.NPM

    if not isinstance(package_data, dict):
        return PackageManagerType.NPM

    declared = str(package_data.get('packageManager') or '')
    for manager in PackageManagerType:
        if declared.startswith(f"{manager.value}@") or declared == manager.value:
            return manager

    if package_data.get('workspaces'):
        return PackageManagerType.YARN

    return PackageManagerType.NPM
