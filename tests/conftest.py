"""Shared fixtures for building throwaway npm projects on disk."""

import json
import os
import shutil
import tempfile
from pathlib import Path

import pytest

from depmender.adapters import NpmAdapter
from depmender.core.models import Lockfile, PackageManagerType, PackageManifest
from depmender.scanners import ScanContext


def write_json(path, data):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def install_package(project_dir, name, version, extra=None, files=('index.js', 'README.md', 'LICENSE')):
    """Create node_modules/<name> with a package.json and the given files."""
    package_dir = os.path.join(project_dir, 'node_modules', *name.split('/'))
    os.makedirs(package_dir, exist_ok=True)
    data = {'name': name, 'version': version}
    data.update(extra or {})
    write_json(os.path.join(package_dir, 'package.json'), data)
    for file_name in files:
        with open(os.path.join(package_dir, file_name), 'w') as f:
            f.write('// placeholder\n')
    return package_dir


@pytest.fixture
def temp_project_dir():
    """Create a temporary project directory."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir

    # Cleanup
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def make_project(temp_project_dir):
    """Write package.json (and optionally installed packages) into the temp project."""

    def _make(dependencies=None, dev_dependencies=None, peer_dependencies=None,
              optional_dependencies=None, installed=None, name='test-project', version='1.0.0'):
        manifest = {'name': name, 'version': version}
        if dependencies:
            manifest['dependencies'] = dependencies
        if dev_dependencies:
            manifest['devDependencies'] = dev_dependencies
        if peer_dependencies:
            manifest['peerDependencies'] = peer_dependencies
        if optional_dependencies:
            manifest['optionalDependencies'] = optional_dependencies
        write_json(os.path.join(temp_project_dir, 'package.json'), manifest)

        for pkg_name, pkg_version in (installed or {}).items():
            install_package(temp_project_dir, pkg_name, pkg_version)

        return temp_project_dir

    return _make


@pytest.fixture
def make_context():
    """Build a ScanContext directly from a project directory that already exists on disk."""

    def _make(project_dir):
        with open(os.path.join(project_dir, 'package.json')) as f:
            manifest = PackageManifest.from_dict(json.load(f))
        adapter = NpmAdapter(project_dir)
        return ScanContext(
            project_path=Path(project_dir),
            manifest=manifest,
            lockfile=Lockfile.empty(PackageManagerType.NPM),
            installed_packages=adapter.get_installed_packages(project_dir),
            adapter=adapter,
        )

    return _make
