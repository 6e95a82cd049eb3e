"""Yarn package manager adapter"""

import re
from pathlib import Path
from typing import List, Dict, Any

from depmender.core.errors import LockfileError
from depmender.core.models import PackageManagerType

from .base import PackageManagerAdapter


# v1:    version "1.2.3"
# berry: version: 1.2.3
_VERSION_LINE = re.compile(r'^\s+version:?\s+"?([^"\s]+)"?\s*$')
_RESOLVED_LINE = re.compile(r'^\s+(?:resolved|resolution):?\s+"?([^"\s]+)"?\s*$')


def parse_yarn_lock(content: str) -> Dict[str, Any]:
    """
    Parse yarn.lock (classic v1 or berry) into entries

    Format:
        package-name@^1.0.0, package-name@^1.2.0:
          version "1.2.3"
          resolved "..."

    Returns:
        {'lockfileVersion': 1 or 'berry', 'entries': {descriptor: {'name', 'version', 'resolved'}}}
    """
    entries = {}
    current = None

    for line in content.split('\n'):
        if not line.strip() or line.lstrip().startswith('#'):
            continue

        # Unindented lines ending with ':' start a new entry
        if not line[0].isspace() and line.rstrip().endswith(':'):
            descriptor = line.rstrip()[:-1].strip()
            first = descriptor.split(',')[0].strip().strip('"\'')
            # Keep the leading @ of scoped names when splitting off the range
            at = first.find('@', 1)
            name = first[:at] if at > 0 else first
            current = {'name': name, 'version': None, 'resolved': None}
            entries[descriptor] = current
            continue

        if current is None:
            continue

        version_match = _VERSION_LINE.match(line)
        if version_match and current['version'] is None:
            current['version'] = version_match.group(1)
            continue

        resolved_match = _RESOLVED_LINE.match(line)
        if resolved_match and current['resolved'] is None:
            current['resolved'] = resolved_match.group(1)

    metadata = entries.pop('__metadata', None)
    return {
        'lockfileVersion': 'berry' if metadata is not None else 1,
        'entries': entries,
    }


class YarnAdapter(PackageManagerAdapter):
    """Adapter for Yarn projects (yarn.lock)"""

    def get_type(self) -> PackageManagerType:
        return PackageManagerType.YARN

    def get_lockfile_name(self) -> str:
        return 'yarn.lock'

    def _parse_lockfile(self, lockfile_path: Path) -> Dict[str, Any]:
        try:
            with open(lockfile_path, 'r', encoding='utf-8') as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise LockfileError(f"Cannot read {lockfile_path}: {e}") from e

        content = parse_yarn_lock(text)
        if not content['entries'] and 'yarn lockfile v1' not in text:
            raise LockfileError(f"Invalid yarn.lock: no entries found in {lockfile_path}")

        return content

    def _install_all_command(self) -> List[str]:
        return ['yarn', 'install']

    def _install_command(self, package_spec: str) -> List[str]:
        return ['yarn', 'add', package_spec]

    def _update_command(self, package_spec: str) -> List[str]:
        return ['yarn', 'upgrade', package_spec]
