"""
Category suggestion for OrçaMais.

Suggests a category from a transaction description using a chain of
responsibility with configurable rules.

Quick Start:
    >>> from orcamais.categorization import CategorizationEngine
    >>>
    >>> engine = CategorizationEngine()
    >>> engine.suggest("Uber para o aeroporto")
    'Transporte'
"""
from orcamais.categorization.categorizer import CategorizationEngine
from orcamais.categorization.base import CategorizationRule
from orcamais.categorization.rules import (
    KeywordRule,
    RegexRule,
    UserDefinedRule,
    KeywordScoreRule,
    DefaultRule,
)
from orcamais.categorization import categories

__all__ = [
    "CategorizationEngine",
    "CategorizationRule",
    "KeywordRule",
    "RegexRule",
    "UserDefinedRule",
    "KeywordScoreRule",
    "DefaultRule",
    "categories",
]
