"""Project configuration loading"""

import fnmatch
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Dict, Any

from .errors import ConfigError
from .models import RiskLevel, SecuritySeverity


CONFIG_FILE_NAMES = ['depmender.config.json', '.depmenderrc', '.depmenderrc.json']

DEFAULT_REGISTRY_URL = 'https://registry.npmjs.org'
DEFAULT_ADVISORY_URL = 'https://registry.npmjs.org/-/npm/v1/security/advisories/bulk'


@dataclass
class RulesConfig:
    exclude_packages: List[str] = field(default_factory=list)   # fnmatch patterns
    include_dev: bool = True
    allowed_vulnerabilities: List[SecuritySeverity] = field(default_factory=list)

    def is_excluded(self, package_name: str) -> bool:
        return any(fnmatch.fnmatchcase(package_name, p) for p in self.exclude_packages)


@dataclass
class AutoFixConfig:
    confirm_before_fix: bool = True
    max_risk_level: RiskLevel = RiskLevel.MEDIUM


@dataclass
class RegistryConfig:
    url: str = DEFAULT_REGISTRY_URL
    advisory_url: str = DEFAULT_ADVISORY_URL
    timeout: float = 5.0
    concurrency: int = 10


@dataclass
class OutputConfig:
    format: str = 'console'   # console or json


@dataclass
class DepmenderConfig:
    rules: RulesConfig = field(default_factory=RulesConfig)
    auto_fix: AutoFixConfig = field(default_factory=AutoFixConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    source: Optional[str] = None   # File the config was read from, if any

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DepmenderConfig':
        """
        Build config from a decoded JSON object

        Accepts both camelCase keys (as written in depmender.config.json)
        and snake_case keys.

        Raises:
            ConfigError: On wrong types or unknown enum values
        """
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a JSON object")

        rules_data = _section(data, 'rules')
        fix_data = _section(data, 'autoFix', 'auto_fix')
        registry_data = _section(data, 'registry')
        output_data = _section(data, 'output')

        try:
            rules = RulesConfig(
                exclude_packages=list(_get(rules_data, 'excludePackages', 'exclude_packages', default=[])),
                include_dev=bool(_get(rules_data, 'includeDev', 'include_dev', default=True)),
                allowed_vulnerabilities=[
                    SecuritySeverity(str(s).lower())
                    for s in _get(rules_data, 'allowedVulnerabilities', 'allowed_vulnerabilities', default=[])
                ],
            )
            auto_fix = AutoFixConfig(
                confirm_before_fix=bool(_get(fix_data, 'confirmBeforeFix', 'confirm_before_fix', default=True)),
                max_risk_level=RiskLevel(str(_get(fix_data, 'maxRiskLevel', 'max_risk_level',
                                                  default='medium')).lower()),
            )
            registry = RegistryConfig(
                url=str(_get(registry_data, 'url', default=DEFAULT_REGISTRY_URL)).rstrip('/'),
                advisory_url=str(_get(registry_data, 'advisoryUrl', 'advisory_url', default=DEFAULT_ADVISORY_URL)),
                timeout=float(_get(registry_data, 'timeout', default=5.0)),
                concurrency=int(_get(registry_data, 'concurrency', default=10)),
            )
            output_format = str(_get(output_data, 'format', default='console')).lower()
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e

        if output_format not in ('console', 'json'):
            raise ConfigError(f"Invalid output format: {output_format}")
        if registry.concurrency < 1:
            raise ConfigError("registry.concurrency must be at least 1")

        return cls(rules=rules, auto_fix=auto_fix, registry=registry,
                   output=OutputConfig(format=output_format))


def _section(data: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    value = _get(data, *keys, default={})
    if not isinstance(value, dict):
        raise ConfigError(f"Configuration section '{keys[0]}' must be an object")
    return value


def _get(data: Dict[str, Any], *keys: str, default=None):
    for key in keys:
        if key in data:
            return data[key]
    return default


def find_config_file(project_path: Path) -> Optional[Path]:
    for name in CONFIG_FILE_NAMES:
        candidate = Path(project_path) / name
        if candidate.is_file():
            return candidate
    return None


def load_config(project_path, config_file: Optional[str] = None) -> DepmenderConfig:
    """
    Load configuration for a project

    Uses the explicit config file when given, otherwise the first of
    CONFIG_FILE_NAMES found in the project directory, otherwise defaults.
    DEPMENDER_REGISTRY_URL and DEPMENDER_REGISTRY_TIMEOUT override the
    registry settings.

    Args:
        project_path: Project root directory
        config_file: Optional explicit config file path

    Returns:
        DepmenderConfig

    Raises:
        ConfigError: If the file is unreadable or invalid
    """
    path = Path(config_file) if config_file else find_config_file(Path(project_path))

    if path is None:
        config = DepmenderConfig()
    else:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}") from e
        config = DepmenderConfig.from_dict(data)
        config.source = str(path)

    env_url = os.environ.get('DEPMENDER_REGISTRY_URL')
    if env_url:
        config.registry.url = env_url.rstrip('/')

    env_timeout = os.environ.get('DEPMENDER_REGISTRY_TIMEOUT')
    if env_timeout:
        try:
            config.registry.timeout = float(env_timeout)
        except ValueError as e:
            raise ConfigError(f"Invalid DEPMENDER_REGISTRY_TIMEOUT: {env_timeout}") from e

    return config
