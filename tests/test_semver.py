"""Unit tests for npm semver helpers."""

import pytest
from semantic_version import Version

from depmender.core.semver import (
    base_version, common_version, is_exact_version, join_ranges, min_satisfying_version,
    parse_range, parse_version, satisfies, split_ranges, version_diff,
)


def test_parse_version_cleans_prefixes():
    """Test that 'v' and '=' prefixes are accepted like semver.clean."""
    assert parse_version('v1.2.3') == Version('1.2.3')
    assert parse_version(' =1.2.3 ') == Version('1.2.3')
    assert parse_version('1.2') is None
    assert parse_version('not-a-version') is None
    assert parse_version(None) is None


@pytest.mark.parametrize('spec', ['latest', 'file:../lib', 'workspace:*', 'git+https://x/y.git',
                                  'user/repo', 'npm:other@1.0.0'])
def test_parse_range_rejects_non_semver_specifiers(spec):
    """Test that tags, URLs and protocols are not treated as ranges."""
    assert parse_range(spec) is None


def test_satisfies():
    """Test npm range matching."""
    assert satisfies('4.18.2', '^4.0.0')
    assert not satisfies('5.0.0', '^4.0.0')
    assert satisfies('1.2.5', '~1.2.3')
    assert satisfies('2.0.0', '>=1.0.0 <3.0.0')
    assert not satisfies('invalid', '^1.0.0')
    assert not satisfies('1.0.0', 'latest')


def test_is_exact_version():
    """Test detection of pinned versions."""
    assert is_exact_version('1.2.3')
    assert is_exact_version('v1.2.3')
    assert not is_exact_version('^1.2.3')
    assert not is_exact_version('1.2.x')
    assert not is_exact_version('1.0.0 || 2.0.0')
    assert not is_exact_version('1.0.0 - 2.0.0')
    assert not is_exact_version('')


def test_min_satisfying_version():
    """Test finding the lowest version inside a range."""
    assert min_satisfying_version('^4.0.0') == Version('4.0.0')
    assert min_satisfying_version('>1.2.3') == Version('1.2.4')
    assert min_satisfying_version('~1.2') == Version('1.2.0')
    assert min_satisfying_version('<2.0.0') == Version('0.0.0')
    assert min_satisfying_version('>=2.0.0 || ^1.5.0') == Version('1.5.0')
    assert min_satisfying_version('latest') is None


def test_base_version():
    """Test extracting the first version of a range."""
    assert base_version('^4.1.0') == Version('4.1.0')
    assert base_version('>=1.x') == Version('1.0.0')
    assert base_version('*') is None


def test_version_diff():
    """Test classification of version differences."""
    assert version_diff('1.0.0', '2.0.0') == 'major'
    assert version_diff('1.0.0', '1.1.0') == 'minor'
    assert version_diff('1.0.0', '1.0.1') == 'patch'
    assert version_diff('1.0.0-beta.1', '1.0.0') == 'prerelease'
    assert version_diff('1.0.0', '1.0.0') is None
    assert version_diff('bad', '1.0.0') is None


def test_common_version():
    """Test the highest version shared by several ranges."""
    assert common_version(['^1.0.0', '>=1.2.0']) == Version('1.5.2')
    assert common_version(['^16.8.0', '>=16.0.0']) == Version('16.8.1')
    assert common_version(['^16.0.0', '^18.0.0']) is None
    assert common_version(['^1.0.0', 'latest']) is None
    assert common_version([]) is None


def test_join_and_split_ranges():
    assert join_ranges(['^16.0.0', '^18.0.0', '^16.0.0']) == '^16.0.0 AND ^18.0.0'
    assert split_ranges('^16.0.0 AND ^18.0.0') == ['^16.0.0', '^18.0.0']
    assert split_ranges('^1.0.0') == ['^1.0.0']
    assert split_ranges(None) == []
