"""Unit tests for package manager adapters and detection."""

import os
from unittest.mock import AsyncMock

import pytest

from conftest import install_package, write_json
from depmender.adapters import (
    NpmAdapter, PnpmAdapter, YarnAdapter, create_adapter, detect_package_manager, get_adapter_class,
)
from depmender.adapters.yarn_adapter import parse_yarn_lock
from depmender.core.errors import AdapterError, LockfileError
from depmender.core.models import PackageManagerType


YARN_LOCK = '''# THIS IS AN AUTOGENERATED FILE. DO NOT EDIT THIS FILE DIRECTLY.
# yarn lockfile v1


"@babel/core@^7.0.0", "@babel/core@^7.12.0":
  version "7.22.5"
  resolved "https://registry.yarnpkg.com/@babel/core/-/core-7.22.5.tgz"

lodash@^4.17.20:
  version "4.17.21"
  resolved "https://registry.yarnpkg.com/lodash/-/lodash-4.17.21.tgz"
'''


def test_adapter_types():
    """Test that each adapter reports its package manager and lockfile."""
    assert NpmAdapter('.').get_type() == PackageManagerType.NPM
    assert YarnAdapter('.').get_lockfile_name() == 'yarn.lock'
    assert PnpmAdapter('.').get_lockfile_name() == 'pnpm-lock.yaml'
    assert get_adapter_class('pnpm') is PnpmAdapter
    assert get_adapter_class('bower') is None


def test_read_npm_lockfile(temp_project_dir):
    """Test reading a valid package-lock.json."""
    write_json(os.path.join(temp_project_dir, 'package-lock.json'),
               {'name': 'app', 'version': '1.0.0', 'lockfileVersion': 3, 'packages': {}})

    lockfile = NpmAdapter(temp_project_dir).read_lockfile()

    assert lockfile.type == PackageManagerType.NPM
    assert lockfile.content['lockfileVersion'] == 3
    assert lockfile.path.endswith('package-lock.json')


def test_read_lockfile_missing(temp_project_dir):
    """Test that a missing lockfile raises LockfileError."""
    with pytest.raises(LockfileError, match='not found'):
        NpmAdapter(temp_project_dir).read_lockfile()


def test_read_npm_lockfile_invalid(temp_project_dir):
    """Test invalid JSON and missing lockfileVersion."""
    lock_path = os.path.join(temp_project_dir, 'package-lock.json')
    with open(lock_path, 'w') as f:
        f.write('{ broken')
    with pytest.raises(LockfileError, match='Invalid JSON'):
        NpmAdapter(temp_project_dir).read_lockfile()

    write_json(lock_path, {'name': 'app'})
    with pytest.raises(LockfileError, match='lockfileVersion'):
        NpmAdapter(temp_project_dir).read_lockfile()


def test_parse_yarn_lock_entries():
    """Test parsing yarn.lock entries including scoped packages."""
    content = parse_yarn_lock(YARN_LOCK)

    entries = list(content['entries'].values())
    assert content['lockfileVersion'] == 1
    assert {e['name'] for e in entries} == {'@babel/core', 'lodash'}
    assert {e['version'] for e in entries} == {'7.22.5', '4.17.21'}


def test_read_yarn_lockfile(temp_project_dir):
    """Test reading yarn.lock from disk, and rejecting an empty one."""
    lock_path = os.path.join(temp_project_dir, 'yarn.lock')
    with open(lock_path, 'w') as f:
        f.write(YARN_LOCK)

    lockfile = YarnAdapter(temp_project_dir).read_lockfile()
    assert lockfile.type == PackageManagerType.YARN
    assert len(lockfile.content['entries']) == 2

    with open(lock_path, 'w') as f:
        f.write('just some text\n')
    with pytest.raises(LockfileError):
        YarnAdapter(temp_project_dir).read_lockfile()


def test_read_pnpm_lockfile(temp_project_dir):
    """Test reading pnpm-lock.yaml and requiring lockfileVersion."""
    lock_path = os.path.join(temp_project_dir, 'pnpm-lock.yaml')
    with open(lock_path, 'w') as f:
        f.write("lockfileVersion: '6.0'\npackages:\n  /lodash@4.17.21:\n    dev: false\n")

    lockfile = PnpmAdapter(temp_project_dir).read_lockfile()
    assert lockfile.content['lockfileVersion'] == '6.0'

    with open(lock_path, 'w') as f:
        f.write("packages: {}\n")
    with pytest.raises(LockfileError, match='lockfileVersion'):
        PnpmAdapter(temp_project_dir).read_lockfile()

    with open(lock_path, 'w') as f:
        f.write("key: [unclosed\n")
    with pytest.raises(LockfileError, match='Invalid YAML'):
        PnpmAdapter(temp_project_dir).read_lockfile()


def test_installed_packages_without_node_modules(temp_project_dir):
    """Test that a project without node_modules has no installed packages."""
    assert NpmAdapter(temp_project_dir).get_installed_packages() == []


def test_installed_packages_inventory(temp_project_dir):
    """Test listing regular, scoped and manifest-less packages."""
    install_package(temp_project_dir, 'lodash', '4.17.21')
    install_package(temp_project_dir, '@babel/core', '7.22.5')
    os.makedirs(os.path.join(temp_project_dir, 'node_modules', 'empty-pkg'))
    os.makedirs(os.path.join(temp_project_dir, 'node_modules', '.bin'))

    packages = {p.name: p for p in NpmAdapter(temp_project_dir).get_installed_packages()}

    assert set(packages) == {'lodash', '@babel/core', 'empty-pkg'}
    assert packages['lodash'].version == '4.17.21'
    assert packages['@babel/core'].is_valid
    assert packages['@babel/core'].path.endswith(os.path.join('@babel', 'core'))
    assert packages['empty-pkg'].is_valid is False
    assert packages['empty-pkg'].version == 'unknown'


@pytest.mark.parametrize('files, expected', [
    (['pnpm-lock.yaml', 'yarn.lock', 'package-lock.json'], PackageManagerType.PNPM),
    (['yarn.lock', 'package-lock.json'], PackageManagerType.YARN),
    (['package-lock.json', '.yarnrc'], PackageManagerType.NPM),
    (['pnpm-workspace.yaml'], PackageManagerType.PNPM),
    (['.yarnrc.yml'], PackageManagerType.YARN),
    ([], PackageManagerType.NPM),
])
def test_detect_by_files(temp_project_dir, files, expected):
    """Test detection priority of lockfiles and config files."""
    for file_name in files:
        with open(os.path.join(temp_project_dir, file_name), 'w') as f:
            f.write('')

    assert detect_package_manager(temp_project_dir) == expected


def test_detect_by_manifest_fields(temp_project_dir):
    """Test detection from packageManager and workspaces fields."""
    manifest_path = os.path.join(temp_project_dir, 'package.json')

    write_json(manifest_path, {'name': 'app', 'version': '1.0.0', 'packageManager': 'pnpm@8.6.0'})
    assert detect_package_manager(temp_project_dir) == PackageManagerType.PNPM

    write_json(manifest_path, {'name': 'app', 'version': '1.0.0', 'workspaces': ['packages/*']})
    assert detect_package_manager(temp_project_dir) == PackageManagerType.YARN


def test_create_adapter(temp_project_dir):
    """Test adapter creation with detection and explicit choice."""
    with open(os.path.join(temp_project_dir, 'yarn.lock'), 'w') as f:
        f.write(YARN_LOCK)

    assert isinstance(create_adapter(temp_project_dir), YarnAdapter)
    assert isinstance(create_adapter(temp_project_dir, 'npm'), NpmAdapter)
    with pytest.raises(ValueError):
        create_adapter(temp_project_dir, 'bower')


@pytest.mark.asyncio
@pytest.mark.parametrize('adapter_class, install, update', [
    (NpmAdapter, ['npm', 'install', 'lodash@4.17.21'], ['npm', 'install', 'lodash@4.17.21']),
    (YarnAdapter, ['yarn', 'add', 'lodash@4.17.21'], ['yarn', 'upgrade', 'lodash@4.17.21']),
    (PnpmAdapter, ['pnpm', 'add', 'lodash@4.17.21'], ['pnpm', 'update', 'lodash@4.17.21']),
])
async def test_mutation_commands(temp_project_dir, adapter_class, install, update):
    """Test the commands each adapter runs."""
    adapter = adapter_class(temp_project_dir)
    adapter._run = AsyncMock(return_value='')

    await adapter.install_package('lodash', '4.17.21')
    await adapter.update_package('lodash', '4.17.21')

    assert adapter._run.await_args_list[0].args[0] == install
    assert adapter._run.await_args_list[1].args[0] == update


@pytest.mark.asyncio
async def test_regenerate_lockfile_cleans_install_state(temp_project_dir):
    """Test that regenerating removes lockfile and node_modules before installing."""
    write_json(os.path.join(temp_project_dir, 'package-lock.json'), {'lockfileVersion': 3})
    install_package(temp_project_dir, 'lodash', '4.17.21')
    adapter = NpmAdapter(temp_project_dir)
    adapter._run = AsyncMock(return_value='')

    await adapter.regenerate_lockfile()

    assert not os.path.exists(os.path.join(temp_project_dir, 'package-lock.json'))
    assert not os.path.exists(os.path.join(temp_project_dir, 'node_modules'))
    adapter._run.assert_awaited_once_with(['npm', 'install'])


@pytest.mark.asyncio
async def test_run_missing_binary_raises_adapter_error(temp_project_dir):
    """Test that a missing package manager binary becomes an AdapterError."""
    adapter = NpmAdapter(temp_project_dir)

    with pytest.raises(AdapterError, match='not installed'):
        await adapter._run(['depmender-no-such-binary-xyz', 'install'])
