"""
Text normalization helpers shared by the SEO engine and caption extraction.

Matching in this project is word-boundary based: text is lowercased, punctuation is
turned into spaces, and phrases are compared as token sequences so "bay" matches
"Elliott Bay" but not "Baytown".
"""
import html
import re
from typing import Iterable, List, Sequence

_NON_WORD = re.compile(r"[^\w]+", re.UNICODE)
_WHITESPACE = re.compile(r"\s+")
_TAGS = re.compile(r"<[^>]+>")
_SHORTCODES = re.compile(r"\[[^\]]*\]")
_ALNUM_RUNS = re.compile(r"[a-z]+|[0-9]+")


def normalize(text) -> str:
    """Lowercase, strip punctuation to single spaces."""
    if text is None:
        return ""
    return _WHITESPACE.sub(" ", _NON_WORD.sub(" ", str(text).lower()).replace("_", " ")).strip()


def tokens(text) -> List[str]:
    norm = normalize(text)
    return norm.split(" ") if norm else []


def alnum_tokens(text) -> List[str]:
    """Tokens that also split letters from digits: '50mm' -> ['50', 'mm']."""
    return _ALNUM_RUNS.findall(str(text or "").lower())


def contains_sequence(haystack: Sequence[str], needle: Sequence[str]) -> bool:
    """True if `needle` appears as a contiguous run inside `haystack`."""
    n = len(needle)
    if n == 0 or n > len(haystack):
        return False
    for i in range(len(haystack) - n + 1):
        if list(haystack[i:i + n]) == list(needle):
            return True
    return False


def word_overlap(a, b) -> float:
    """Fraction of the shorter term's words that also appear in the longer term."""
    wa, wb = tokens(a), tokens(b)
    if not wa or not wb:
        return 0.0
    shorter, longer = (wa, wb) if len(wa) <= len(wb) else (wb, wa)
    longer_set = set(longer)
    return sum(1 for w in shorter if w in longer_set) / len(shorter)


def shorter_word_count(a, b) -> int:
    return min(len(tokens(a)), len(tokens(b)))


def strip_html(text) -> str:
    """Remove tags and [shortcodes], unescape entities, collapse whitespace."""
    if not text:
        return ""
    cleaned = _SHORTCODES.sub(" ", _TAGS.sub(" ", str(text)))
    cleaned = html.unescape(cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def truncate_words(text: str, max_words: int, suffix: str = "...") -> str:
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]).rstrip(",;:.") + suffix


def trim_to_length(text: str, max_length: int, suffix: str = "...") -> str:
    """Drop trailing words until text (plus suffix) fits."""
    if len(text) <= max_length:
        return text
    words = text.split()
    while words and len(" ".join(words).rstrip(",;:.") + suffix) > max_length:
        words.pop()
    if not words:
        return text[: max(0, max_length - len(suffix))] + suffix
    return " ".join(words).rstrip(",;:.") + suffix


def ucfirst(text: str) -> str:
    return text[:1].upper() + text[1:] if text else text


def join_list(items: Iterable[str]) -> str:
    """'a and b' for two items, 'a, b, c' for three or more."""
    items = [i for i in items if i]
    if len(items) <= 2:
        return " and ".join(items)
    return ", ".join(items)
