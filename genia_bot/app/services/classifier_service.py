"""
🧭 CLASIFICADOR DE CLONES
=========================

Decide qué clon de Genia atiende un mensaje de texto libre.

🔄 FUNCIONAMIENTO:
- Lista ORDENADA de reglas (predicado, categoría); gana la primera que coincide
- Coincidencia por subcadena sobre el texto en minúsculas
- Si ninguna regla coincide → clon "content"

📋 TABLA DE REGLAS (en orden):
    anuncio, publicidad   → ads
    estrategia, negocio   → ceo
    presentación, hablar  → voice
    ventas, embudo        → funnel
    agenda, tiempo        → calendar
    (ninguna)             → content

⚠️ LIMITACIONES CONOCIDAS:
- Sin tokenización ni stemming: "negocios" coincide con "negocio"
- Sin normalización de acentos: "presentacion" NO coincide con "presentación"
- Solo palabras clave en español

📝 EJEMPLO DE USO:
    classify("Necesito un anuncio para mi negocio")  # CloneCategory.ADS
"""

from enum import Enum
from typing import Callable, Optional, Sequence, Tuple


class CloneCategory(str, Enum):
    ADS = "ads"
    CEO = "ceo"
    CONTENT = "content"
    VOICE = "voice"
    FUNNEL = "funnel"
    CALENDAR = "calendar"


Predicate = Callable[[str], bool]
ClassifierRule = Tuple[Predicate, CloneCategory]


def keyword_rule(category: CloneCategory, *keywords: str) -> ClassifierRule:
    """Regla que coincide si cualquiera de las palabras aparece en el texto (ya en minúsculas)."""
    needles = tuple(k.lower() for k in keywords)

    def _matches(text: str) -> bool:
        return any(needle in text for needle in needles)

    return _matches, category


DEFAULT_RULES: Tuple[ClassifierRule, ...] = (
    keyword_rule(CloneCategory.ADS, "anuncio", "publicidad"),
    keyword_rule(CloneCategory.CEO, "estrategia", "negocio"),
    keyword_rule(CloneCategory.VOICE, "presentación", "hablar"),
    keyword_rule(CloneCategory.FUNNEL, "ventas", "embudo"),
    keyword_rule(CloneCategory.CALENDAR, "agenda", "tiempo"),
)


class CloneClassifier:
    """Evalúa las reglas en orden; es una función pura y total."""

    def __init__(
        self,
        rules: Sequence[ClassifierRule] = DEFAULT_RULES,
        default: CloneCategory = CloneCategory.CONTENT,
    ):
        self.rules: Tuple[ClassifierRule, ...] = tuple(rules)
        self.default = default

    def classify(self, text: Optional[str]) -> CloneCategory:
        lowered = (text or "").lower()
        for matches, category in self.rules:
            if matches(lowered):
                return category
        return self.default


default_classifier = CloneClassifier()


def classify(text: Optional[str]) -> CloneCategory:
    return default_classifier.classify(text)
