"""Category names the rest of the application relies on."""

OTHER = "Outros"
INVESTMENTS = "Investimentos"

DEFAULT_CATEGORIES = [
    "Alimentação",
    "Transporte",
    "Moradia",
    "Saúde",
    "Educação",
    "Lazer",
    "Compras",
    INVESTMENTS,
    OTHER,
]
