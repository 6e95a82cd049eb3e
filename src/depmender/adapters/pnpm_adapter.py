"""pnpm package manager adapter"""

from pathlib import Path
from typing import List, Dict, Any

import yaml

from depmender.core.errors import LockfileError
from depmender.core.models import PackageManagerType

from .base import PackageManagerAdapter


class PnpmAdapter(PackageManagerAdapter):
    """Adapter for pnpm projects (pnpm-lock.yaml)"""

    def get_type(self) -> PackageManagerType:
        return PackageManagerType.PNPM

    def get_lockfile_name(self) -> str:
        return 'pnpm-lock.yaml'

    def _parse_lockfile(self, lockfile_path: Path) -> Dict[str, Any]:
        try:
            with open(lockfile_path, 'r', encoding='utf-8') as f:
                content = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise LockfileError(f"Invalid YAML in {lockfile_path}: {e}") from e
        except OSError as e:
            raise LockfileError(f"Cannot read {lockfile_path}: {e}") from e

        if not isinstance(content, dict) or 'lockfileVersion' not in content:
            raise LockfileError(f"Invalid pnpm-lock.yaml: missing lockfileVersion in {lockfile_path}")

        return content

    def _install_all_command(self) -> List[str]:
        return ['pnpm', 'install']

    def _install_command(self, package_spec: str) -> List[str]:
        return ['pnpm', 'add', package_spec]

    def _update_command(self, package_spec: str) -> List[str]:
        return ['pnpm', 'update', package_spec]
