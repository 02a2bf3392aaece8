import math
import re
from collections import Counter

from slugify import slugify

WORDS_PER_MINUTE = 200
ELLIPSIS = "..."

_HEADER_LINE = re.compile(r"^#{1,6}\s.+$", re.MULTILINE)
_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\([^)]+\)")


def count_words(text: str) -> int:
    return len((text or "").split())


def read_time_minutes(word_count: int) -> int:
    return math.ceil(word_count / WORDS_PER_MINUTE)


def create_slug(name: str) -> str:
    return slugify(name or "")


def _truncate_with_ellipsis(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    truncation_point = max_length - len(ELLIPSIS)
    last_space = text[:truncation_point].rfind(" ")
    cutoff = last_space if last_space > 0 else truncation_point
    return text[:cutoff] + ELLIPSIS


def create_description_from_text(text: str, max_length: int = 160) -> str:
    """Meta description: first paragraph without headers or link markup, cut at a word boundary."""
    clean = _HEADER_LINE.sub("", text or "")
    clean = _MARKDOWN_LINK.sub(r"\1", clean).strip()
    first_paragraph = clean.split("\n\n")[0] if clean else ""
    return _truncate_with_ellipsis(first_paragraph, max_length)


def get_keywords_from_text(text: str, min_length: int = 4) -> list[str]:
    """Ten most frequent words of at least ``min_length`` characters, ties kept in first-seen order."""
    cleaned = re.sub(r"[^\w\s]", "", (text or "").lower())
    words = [word for word in cleaned.split() if len(word) >= min_length]
    return [word for word, _ in Counter(words).most_common(10)]


def format_value_for_display(value: str | None) -> str:
    if not value:
        return "Not specified"
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), value.replace("_", " "))


def calculate_content_stats(content: str) -> dict[str, str]:
    word_count = count_words(content)
    return {
        "words_count": str(word_count),
        "read_time_minutes": str(read_time_minutes(word_count)),
    }


def _count_syllables(word: str) -> int:
    word = re.sub(r"[^a-z]", "", word.lower())
    if len(word) <= 3:
        return 1
    vowel_groups = re.findall(r"[aeiouy]+", word)
    count = len(vowel_groups) if vowel_groups else 1
    if word.endswith("e"):
        count -= 1
    if word.endswith("le") and len(word) > 2:
        count += 1
    return max(count, 1)


def readability_level(score: float) -> str:
    if score >= 90:
        return "Very Easy"
    if score >= 80:
        return "Easy"
    if score >= 70:
        return "Fairly Easy"
    if score >= 60:
        return "Standard"
    if score >= 50:
        return "Fairly Difficult"
    if score >= 30:
        return "Difficult"
    return "Very Difficult"


def calculate_readability_score(text: str) -> dict[str, float | str]:
    """Flesch reading ease. Empty text scores 0 instead of dividing by zero."""
    sentences = [s for s in re.split(r"[.!?]+", text or "") if s.strip()]
    words = (text or "").split()
    if not sentences or not words:
        return {"score": 0.0, "level": readability_level(0.0)}

    syllables = sum(_count_syllables(word) for word in words)
    avg_words_per_sentence = len(words) / len(sentences)
    avg_syllables_per_word = syllables / len(words)
    score = 206.835 - 1.015 * avg_words_per_sentence - 84.6 * avg_syllables_per_word
    return {"score": round(score, 2), "level": readability_level(score)}
