import logging
from typing import Any, Dict, List, Optional

from orcamais.categorization.base import CategorizationRule
from orcamais.categorization.categories import DEFAULT_CATEGORIES, OTHER
from orcamais.categorization.rules import DefaultRule, KeywordScoreRule, UserDefinedRule
from orcamais.config.settings import ConfigLoader

logger = logging.getLogger(__name__)


class CategorizationEngine:
    """
    Suggests a category from a transaction description.

    Builds a chain of rules in priority order:
    1. User-defined rules (config/categorization_rules.json)
    2. Keyword scoring over the category keyword map (categories.json)
    3. Default ('Outros')

    Usage:
        # Production - loads from ConfigLoader
        engine = CategorizationEngine()

        # Testing - inject custom config
        engine = CategorizationEngine(
            rules_config={"rules": [...]},
            categories_config={"categories": [...], "keywords": {...}},
        )

        engine.suggest("Almoço no restaurante")  # 'Alimentação'
    """

    def __init__(
        self,
        rules_config: Optional[Dict[str, Any]] = None,
        categories_config: Optional[Dict[str, Any]] = None,
        use_defaults: bool = True,
    ):
        """
        Args:
            rules_config: Optional user rules. If None, loads from ConfigLoader.
            categories_config: Optional categories/keywords. If None, loads from ConfigLoader.
            use_defaults: Whether to include the keyword scoring rule
        """
        self.use_defaults = use_defaults
        self._categories_config = self._load_categories_config(categories_config)
        self._rule_chain: Optional[CategorizationRule] = None

        self._build_rule_chain(rules_config)

    @property
    def default_categories(self) -> List[str]:
        """Categories a new user starts with"""
        return list(self._categories_config.get("categories") or DEFAULT_CATEGORIES)

    def _load_categories_config(self, config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if config is not None:
            return config

        try:
            return ConfigLoader.load_categories_config()
        except FileNotFoundError:
            logger.warning("categories.json not found, using built-in category list")
            return {"categories": DEFAULT_CATEGORIES, "keywords": {}}

    def _load_user_rules_config(self, config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if config is not None:
            return config

        try:
            return ConfigLoader.load_rules_config()
        except FileNotFoundError:
            # User hasn't created custom rules yet - that's fine.
            return {"rules": []}

    def _build_rule_chain(self, rules_config: Optional[Dict[str, Any]]) -> None:
        rules: List[CategorizationRule] = []

        user_rules = self._load_user_rules_config(rules_config).get("rules", [])
        if user_rules:
            rules.append(UserDefinedRule(user_rules))

        keywords = self._categories_config.get("keywords") or {}
        if self.use_defaults and keywords:
            rules.append(KeywordScoreRule(keywords))

        rules.append(DefaultRule(OTHER))

        self._rule_chain = rules[0]
        for current, following in zip(rules, rules[1:]):
            current.set_next(following)

    def suggest(self, description: str) -> str:
        """
        Suggest a category for a description.

        Descriptions shorter than two characters always get 'Outros'.
        """
        if not description or len(description.strip()) < 2:
            return OTHER

        category = self._rule_chain.categorize(description)
        assert category is not None, "Rule chain should never return None"
        return category

    def get_rule_chain_info(self) -> str:
        """Describe the active rule chain, one rule per line"""
        rules = []
        current = self._rule_chain
        priority = 1

        while current:
            rules.append(f"{priority}. {current}")
            current = current._next_rule
            priority += 1

        return "\n".join(rules)

    def __repr__(self) -> str:
        num_rules = 0
        current = self._rule_chain
        while current:
            num_rules += 1
            current = current._next_rule

        return f"CategorizationEngine({num_rules} rules in chain)"
