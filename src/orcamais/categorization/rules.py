import re
import unicodedata
from typing import Dict, List

from orcamais.categorization.base import CategorizationRule
from orcamais.categorization.categories import OTHER


def normalize(text: str) -> str:
    """Lowercase and strip accents ('Farmácia ' -> 'farmacia')"""
    decomposed = unicodedata.normalize("NFD", text.lower().strip())
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def jaro_similarity(first: str, second: str) -> float:
    """Jaro similarity between two strings, from 0.0 to 1.0"""
    if first == second:
        return 1.0

    len1, len2 = len(first), len(second)
    if len1 == 0 or len2 == 0:
        return 0.0

    match_window = max(len1, len2) // 2 - 1
    if match_window < 0:
        return 0.0

    first_matches = [False] * len1
    second_matches = [False] * len2
    matches = 0

    for i in range(len1):
        start = max(0, i - match_window)
        end = min(i + match_window + 1, len2)
        for j in range(start, end):
            if second_matches[j] or first[i] != second[j]:
                continue
            first_matches[i] = second_matches[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i in range(len1):
        if not first_matches[i]:
            continue
        while not second_matches[k]:
            k += 1
        if first[i] != second[k]:
            transpositions += 1
        k += 1

    return (
        matches / len1
        + matches / len2
        + (matches - transpositions / 2) / matches
    ) / 3


class KeywordRule(CategorizationRule):
    """
    Rule that matches keywords in descriptions.

    Case and accent insensitive; the first category with a matching
    keyword wins.

    Example:
        ```
        rule = KeywordRule({"Lazer": ["netflix", "cinema"]})
        ```
    """

    def __init__(self, keyword_map: Dict[str, List[str]]):
        super().__init__()
        self.keyword_map = keyword_map

        self._normalized_map: Dict[str, List[str]] = {
            category: [normalize(kw) for kw in keywords]
            for category, keywords in keyword_map.items()
        }

    def _find(self, description: str):
        text = normalize(description)
        for category, keywords in self._normalized_map.items():
            for keyword in keywords:
                if keyword in text:
                    return category
        return None

    def _matches(self, description: str) -> bool:
        return self._find(description) is not None

    def _get_category(self, description: str) -> str:
        category = self._find(description)
        if category is None:
            raise RuntimeError("_get_category called but no match found")
        return category

    def __repr__(self):
        return f"KeywordRule({len(self.keyword_map)} categories)"


class RegexRule(CategorizationRule):
    """
    Rule that matches regex patterns in descriptions.

    Example:
        rule = RegexRule({"Moradia": [r"^aluguel\\b", r"condom[ií]nio"]})
    """

    def __init__(self, pattern_map: Dict[str, List[str]]):
        super().__init__()
        self.pattern_map = pattern_map

        self._compiled_patterns: Dict[str, List[re.Pattern]] = {
            category: [re.compile(pattern, re.IGNORECASE) for pattern in patterns]
            for category, patterns in pattern_map.items()
        }

    def _find(self, description: str):
        for category, patterns in self._compiled_patterns.items():
            for pattern in patterns:
                if pattern.search(description):
                    return category
        return None

    def _matches(self, description: str) -> bool:
        return self._find(description) is not None

    def _get_category(self, description: str) -> str:
        category = self._find(description)
        if category is None:
            raise RuntimeError("_get_category called but no match found")
        return category

    def __repr__(self) -> str:
        return f"RegexRule({len(self.pattern_map)} categories)"


class UserDefinedRule(CategorizationRule):
    """
    Rule built from user-defined mappings in config.

    Loaded from config/categorization_rules.json and has the highest
    priority in the chain.

    Config format:
        {
            "rules": [
                {"category": "Lazer", "patterns": ["crunchyroll"], "type": "keyword"},
                {"category": "Moradia", "patterns": ["^aluguel"], "type": "regex"}
            ]
        }
    """

    def __init__(self, rules_config: List[Dict]):
        super().__init__()
        self.rules = rules_config
        self._chain: List[CategorizationRule] = []

        for rule_def in self.rules:
            category = rule_def["category"]
            patterns = rule_def["patterns"]
            if rule_def.get("type", "keyword") == "regex":
                self._chain.append(RegexRule({category: patterns}))
            else:
                self._chain.append(KeywordRule({category: patterns}))

    def _matches(self, description: str) -> bool:
        return any(rule._matches(description) for rule in self._chain)

    def _get_category(self, description: str) -> str:
        for rule in self._chain:
            if rule._matches(description):
                return rule._get_category(description)

        raise RuntimeError("_get_category called but no match found")

    def __repr__(self) -> str:
        return f"UserDefinedRule({len(self.rules)} rules)"


class KeywordScoreRule(CategorizationRule):
    """
    Scores every category against its keyword list and picks the best.

    Per keyword (accent-insensitive):
        exact description          +10
        whole word in description   +5
        substring of description    +2
        Jaro similarity above 0.8   +1

    The best category is used only when its score reaches `min_score`.
    """

    EXACT = 10
    WORD = 5
    SUBSTRING = 2
    SIMILAR = 1

    def __init__(self, keyword_map: Dict[str, List[str]], min_score: int = 2):
        super().__init__()
        self.keyword_map = keyword_map
        self.min_score = min_score
        self._normalized_map: Dict[str, List[str]] = {
            category: [normalize(kw) for kw in keywords]
            for category, keywords in keyword_map.items()
        }

    def score(self, description: str) -> Dict[str, int]:
        """Score of each category with a positive score"""
        text = normalize(description)
        scores: Dict[str, int] = {}

        for category, keywords in self._normalized_map.items():
            total = 0
            for keyword in keywords:
                if text == keyword:
                    total += self.EXACT
                elif (
                    f" {keyword} " in text
                    or text.startswith(f"{keyword} ")
                    or text.endswith(f" {keyword}")
                ):
                    total += self.WORD
                elif keyword in text:
                    total += self.SUBSTRING
                elif jaro_similarity(text, keyword) > 0.8:
                    total += self.SIMILAR
            if total > 0:
                scores[category] = total

        return scores

    def _best(self, description: str):
        scores = self.score(description)
        if not scores:
            return None
        best = max(scores, key=scores.get)
        return best if scores[best] >= self.min_score else None

    def _matches(self, description: str) -> bool:
        return len(description.strip()) >= 2 and self._best(description) is not None

    def _get_category(self, description: str) -> str:
        return self._best(description)

    def __repr__(self):
        return f"KeywordScoreRule({len(self.keyword_map)} categories, min_score={self.min_score})"


class DefaultRule(CategorizationRule):
    """
    Fallback rule that always matches.

    Should be the last rule in the chain.
    """

    def __init__(self, default_category: str = OTHER):
        super().__init__()
        self.default_category = default_category

    def _matches(self, _: str) -> bool:
        return True

    def _get_category(self, _: str) -> str:
        return self.default_category

    def __repr__(self) -> str:
        return f"DefaultRule('{self.default_category}')"
