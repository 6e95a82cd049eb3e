"""npm package manager adapter"""

import json
from pathlib import Path
from typing import List, Dict, Any

from depmender.core.errors import LockfileError
from depmender.core.models import PackageManagerType

from .base import PackageManagerAdapter


class NpmAdapter(PackageManagerAdapter):
    """Adapter for npm projects (package-lock.json)"""

    def get_type(self) -> PackageManagerType:
        return PackageManagerType.NPM

    def get_lockfile_name(self) -> str:
        return 'package-lock.json'

    def _parse_lockfile(self, lockfile_path: Path) -> Dict[str, Any]:
        try:
            with open(lockfile_path, 'r', encoding='utf-8') as f:
                content = json.load(f)
        except json.JSONDecodeError as e:
            raise LockfileError(f"Invalid JSON in {lockfile_path}: {e}") from e
        except OSError as e:
            raise LockfileError(f"Cannot read {lockfile_path}: {e}") from e

        if not isinstance(content, dict) or 'lockfileVersion' not in content:
            raise LockfileError(f"Invalid package-lock.json: missing lockfileVersion in {lockfile_path}")

        return content

    def _install_all_command(self) -> List[str]:
        return ['npm', 'install']

    def _install_command(self, package_spec: str) -> List[str]:
        return ['npm', 'install', package_spec]

    def _update_command(self, package_spec: str) -> List[str]:
        # `npm update` ignores explicit versions, installing the spec pins it
        return ['npm', 'install', package_spec]
