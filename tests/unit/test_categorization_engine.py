import pytest

from orcamais.categorization import (
    CategorizationEngine,
    DefaultRule,
    KeywordRule,
    KeywordScoreRule,
    RegexRule,
)
from orcamais.categorization.rules import jaro_similarity, normalize

KEYWORDS = {
    "Alimentação": ["mercado", "padaria", "restaurante"],
    "Transporte": ["uber", "gasolina", "aeroporto"],
    "Lazer": ["netflix", "cinema"],
    "Saúde": ["farmácia"],
}


@pytest.fixture
def categories_config():
    return {"categories": list(KEYWORDS) + ["Outros"], "keywords": KEYWORDS}


@pytest.mark.unit
class TestCategorizationEngineConfig:
    """Test config loading pattern"""

    def test_suggest_with_injected_config(self, categories_config):
        # Arrange
        engine = CategorizationEngine(rules_config={"rules": []}, categories_config=categories_config)

        # Act
        category = engine.suggest("Uber para o aeroporto")

        # Assert
        assert category == "Transporte"

    def test_packaged_keywords(self, categorization_engine):
        """The bundled keyword map covers everyday descriptions"""
        assert categorization_engine.suggest("netflix") == "Lazer"
        assert categorization_engine.suggest("Almoço no restaurante") == "Alimentação"
        assert categorization_engine.suggest("Farmácia") == "Saúde"

    def test_default_categories_come_from_config(self, categories_config):
        # Act
        engine = CategorizationEngine(rules_config={"rules": []}, categories_config=categories_config)

        # Assert
        assert engine.default_categories == ["Alimentação", "Transporte", "Lazer", "Saúde", "Outros"]

    def test_user_rules_override_keywords(self, categories_config):
        """Test that user config has highest priority."""

        # Arrange
        rules = {"rules": [{"category": "Assinaturas", "type": "keyword", "patterns": ["netflix"]}]}
        engine = CategorizationEngine(rules_config=rules, categories_config=categories_config)

        # Act
        category = engine.suggest("Netflix")

        # Assert
        assert category == "Assinaturas"

    def test_user_regex_rule(self, categories_config):
        # Arrange
        rules = {"rules": [{"category": "Moradia", "type": "regex", "patterns": [r"^aluguel\b"]}]}
        engine = CategorizationEngine(rules_config=rules, categories_config=categories_config)

        # Act / Assert
        assert engine.suggest("Aluguel de março") == "Moradia"
        assert engine.suggest("Pagamento do aluguel") == "Outros"

    def test_disable_keyword_scoring(self, categories_config):
        # Arrange
        engine = CategorizationEngine(
            rules_config={"rules": []},
            categories_config=categories_config,
            use_defaults=False,
        )

        # Act
        category = engine.suggest("Mercado")

        # Assert
        assert category == "Outros"


@pytest.mark.unit
class TestSuggestionFallback:

    @pytest.mark.parametrize("description", ["", " ", "x"])
    def test_short_descriptions_get_other(self, categorization_engine, description):
        assert categorization_engine.suggest(description) == "Outros"

    def test_unknown_description_gets_other(self, categories_config):
        # Arrange
        engine = CategorizationEngine(rules_config={"rules": []}, categories_config=categories_config)

        # Act
        category = engine.suggest("Transferência qualquer")

        # Assert
        assert category == "Outros"


@pytest.mark.unit
class TestCategorizationEngineChain:
    """Test the rule chain behavior."""

    def test_rule_chain_info(self, categories_config):
        # Arrange
        rules = {"rules": [{"category": "Test", "type": "keyword", "patterns": ["test"]}]}

        # Act
        engine = CategorizationEngine(rules_config=rules, categories_config=categories_config)
        info = engine.get_rule_chain_info()

        # Assert
        assert "UserDefinedRule" in info
        assert "KeywordScoreRule" in info
        assert "DefaultRule" in info
        assert repr(engine) == "CategorizationEngine(3 rules in chain)"

    def test_chained_rules_fall_through(self):
        # Arrange
        first = KeywordRule({"Lazer": ["cinema"]})
        first.set_next(RegexRule({"Moradia": [r"condom[ií]nio"]})).set_next(DefaultRule())

        # Act / Assert
        assert first.categorize("Ingresso cinema") == "Lazer"
        assert first.categorize("Condominio de abril") == "Moradia"
        assert first.categorize("Presente") == "Outros"


@pytest.mark.unit
class TestKeywordScoring:

    def test_exact_match_outscores_substring(self):
        # Arrange
        rule = KeywordScoreRule({"Alimentação": ["mercado"]})

        # Act
        exact = rule.score("Mercado")
        partial = rule.score("Supermercado Extra")

        # Assert
        assert exact == {"Alimentação": KeywordScoreRule.EXACT}
        assert partial == {"Alimentação": KeywordScoreRule.SUBSTRING}

    def test_accent_insensitive(self):
        # Arrange
        rule = KeywordScoreRule({"Saúde": ["farmácia"]})

        # Act / Assert
        assert rule.score("farmacia do bairro") == {"Saúde": KeywordScoreRule.WORD}

    def test_below_min_score_does_not_match(self):
        # Arrange
        rule = KeywordScoreRule({"Lazer": ["cinema"]}, min_score=5)

        # Act / Assert
        assert rule.categorize("cinemark") is None

    def test_normalize_and_similarity(self):
        assert normalize(" Açougue ") == "acougue"
        assert jaro_similarity("uber", "uber") == 1.0
        assert jaro_similarity("", "uber") == 0.0
        assert jaro_similarity("gasolina", "gasolna") > 0.8
