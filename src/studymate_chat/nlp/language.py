"""Lightweight language detection for English, Russian and Uzbek."""

from __future__ import annotations

import re

from studymate_chat.types import LanguageDetection

SUPPORTED_LANGUAGES = ("en", "ru", "uz")
DEFAULT_LANGUAGE = "en"

_WORD = re.compile(r"[^\W\d_]+(?:['‘’ʻ`][^\W\d_]+)?", flags=re.UNICODE)
_CYRILLIC = re.compile(r"[Ѐ-ӿ]")
_UZBEK_CYRILLIC_LETTERS = re.compile(r"[ўқғҳЎҚҒҲ]")
_UZBEK_LATIN_MARKERS = re.compile(r"\b\w*(o['‘’ʻ`]|g['‘’ʻ`])\w*", flags=re.IGNORECASE)

_UZBEK_WORDS = frozenset(
    {
        "salom", "assalomu", "alaykum", "rahmat", "qanday", "nima", "nimalar",
        "qachon", "qayerda", "kim", "men", "mening", "menga", "sen", "siz",
        "bugun", "ertaga", "kecha", "yordam", "bering", "ber", "haqida",
        "uchun", "bilan", "va", "ham", "emas", "bor", "yo'q", "qilish",
        "qilaman", "qanaqa", "vazifa", "vazifalar", "vazifalarim", "sessiya",
        "reyting", "hafta", "oy", "kun", "iltimos", "xayrli", "tong", "kerak",
        "mumkin", "qancha", "necha", "shu", "bu", "u", "ular",
    }
)
_UZBEK_CYRILLIC_WORDS = frozenset(
    {"салом", "ассалому", "алайкум", "раҳмат", "рахмат", "қандай", "нима", "менинг", "бугун", "ёрдам"}
)
_ENGLISH_WORDS = frozenset(
    {
        "the", "a", "an", "is", "are", "what", "how", "when", "where", "who",
        "why", "can", "do", "does", "i", "my", "me", "you", "your", "to", "of",
        "in", "on", "for", "and", "with", "today", "please", "show", "tell",
        "hi", "hello", "hey", "thanks", "help",
    }
)


def detect_language(text: str) -> LanguageDetection:
    """Return a language code with a rough confidence in [0, 1].

    Cyrillic script decides between Russian and Uzbek Cyrillic; Latin script is
    scored against small Uzbek and English vocabularies. Ambiguous input falls
    back to English with low confidence.
    """

    stripped = text.strip()
    if not stripped:
        return LanguageDetection(code=DEFAULT_LANGUAGE, confidence=0.0)

    letters = [char for char in stripped if char.isalpha()]
    if not letters:
        return LanguageDetection(code=DEFAULT_LANGUAGE, confidence=0.0)

    cyrillic = sum(1 for char in letters if _CYRILLIC.match(char))
    cyrillic_ratio = cyrillic / len(letters)
    words = [word.lower() for word in _WORD.findall(stripped)]

    if cyrillic_ratio >= 0.5:
        uzbek_hits = len(_UZBEK_CYRILLIC_LETTERS.findall(stripped)) + sum(
            1 for word in words if word in _UZBEK_CYRILLIC_WORDS
        )
        if uzbek_hits:
            return LanguageDetection(code="uz", confidence=min(1.0, 0.6 + 0.1 * uzbek_hits))
        return LanguageDetection(code="ru", confidence=round(0.5 + cyrillic_ratio / 2, 3))

    if not words:
        return LanguageDetection(code=DEFAULT_LANGUAGE, confidence=0.1)

    uzbek_score = sum(1 for word in words if _normalize_apostrophes(word) in _UZBEK_WORDS)
    uzbek_score += len(_UZBEK_LATIN_MARKERS.findall(stripped))
    english_score = sum(1 for word in words if word in _ENGLISH_WORDS)

    if uzbek_score > english_score:
        return LanguageDetection(code="uz", confidence=round(uzbek_score / len(words), 3))
    if english_score:
        return LanguageDetection(
            code="en", confidence=round(min(1.0, english_score / len(words) + 0.3), 3)
        )
    return LanguageDetection(code=DEFAULT_LANGUAGE, confidence=0.2)


def _normalize_apostrophes(word: str) -> str:
    return re.sub(r"['‘’ʻ`]", "'", word)
