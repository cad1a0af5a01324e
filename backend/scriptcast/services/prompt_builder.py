"""
Geração do prompt visual de cada segmento.

É uma tabela fixa de palavras-chave, não um modelo. O pipeline recebe a
função por parâmetro (PromptBuilder), então dá para trocar por um gerador
melhor sem mexer no orquestrador.
"""

from typing import Callable, Dict, List

# (texto do segmento, estilo) -> prompt
PromptBuilder = Callable[[str, str], str]

THEME_KEYWORDS: List[str] = [
    "technology", "nature", "business", "education",
    "science", "art", "music", "sports",
]

# Roteiros chegam em vietnamita com frequência
KEYWORD_TRANSLATIONS: Dict[str, str] = {
    "technology": "công nghệ",
    "nature": "thiên nhiên",
    "business": "kinh doanh",
    "education": "giáo dục",
}

DEFAULT_THEME = "abstract"


def extract_theme(text: str) -> str:
    """Primeiro tema cuja palavra-chave (ou tradução) aparece no texto."""
    lowered = text.lower()
    for keyword in THEME_KEYWORDS:
        translated = KEYWORD_TRANSLATIONS.get(keyword, keyword)
        if keyword in lowered or translated in lowered:
            return f"{keyword} themed"
    return DEFAULT_THEME


def build_visual_prompt(text: str, style: str) -> str:
    """Prompt padrão: estilo + tema + modificadores fixos de qualidade."""
    theme = extract_theme(text)
    return (
        f"High quality {style} video, {theme}, "
        "cinematic lighting, professional composition, 4K resolution"
    )
