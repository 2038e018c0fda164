from abc import ABC, abstractmethod
from typing import Optional


class CategorizationRule(ABC):
    """
    Abstract base class for all categorization rules.

    Implements Chain of Responsibility:
    - Each rule tries to categorize a description
    - If it can't it passes to the next rule
    - Rules are tried in priority order

    Usage:
        Create chain: specific -> general -> default
        ```
        user_rule = UserDefinedRule(...)
        score_rule = KeywordScoreRule(...)
        default_rule = DefaultRule()

        user_rule.set_next(score_rule).set_next(default_rule)

        category = user_rule.categorize("Uber para o trabalho")
        ```
    """

    def __init__(self):
        self._next_rule: Optional['CategorizationRule'] = None

    def set_next(self, rule: 'CategorizationRule') -> 'CategorizationRule':
        """
        Set the next rule in the chain.

        Returns:
            The rule that was set (for chaining)
        """
        self._next_rule = rule
        return rule

    @abstractmethod
    def _matches(self, description: str) -> bool:
        """
        Check if this rule matches the description.

        Subclasses implement their specific matching logic here.
        """
        pass

    @abstractmethod
    def _get_category(self, description: str) -> str:
        """
        Get the category for the description.

        Called only if _matches() returns True.
        """
        pass

    def categorize(self, description: str) -> Optional[str]:
        """
        Attempt to categorize a description, falling through the chain.

        Returns:
            Category name, or None if no rules matched
        """
        if self._matches(description):
            return self._get_category(description)

        if self._next_rule:
            return self._next_rule.categorize(description)

        return None

    def __repr__(self):
        return f"{self.__class__.__name__}()"
