"""
Dependency Health Scanner and Fixer

Diagnoses missing, outdated, broken, conflicting and vulnerable
dependencies in npm, yarn and pnpm projects and applies graded fixes
"""

try:
    from importlib.metadata import version
    __version__ = version("depmender")
except Exception:
    # Fallback for development installs
    __version__ = "0.0.0-dev"

from . import core
from . import adapters
from . import sources
from . import scanners
from . import fixers
from .analyzer import DependencyAnalyzer
from .fixers import AutoFixer

__all__ = ['core', 'adapters', 'sources', 'scanners', 'fixers',
           'DependencyAnalyzer', 'AutoFixer', '__version__']
