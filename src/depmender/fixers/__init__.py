"""Fix generation and application"""

from .auto_fixer import AutoFixer
from .conflict_resolver import ConflictResolver
from .suggestion_engine import SuggestionEngine, update_risk

__all__ = ['AutoFixer', 'ConflictResolver', 'SuggestionEngine', 'update_risk']
