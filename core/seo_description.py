"""
SEO Description Generator
Builds a short (<= 155 character) meta description for a photo post from its
location, weather and tags.

Pipeline:
    1. Location phrase  - taxonomy chain or flat fields, redundant levels collapsed
    2. Tags             - filtered (duplicates, places, blacklist, length) then scored
                          against title/content/excerpt/weather and term tiers
    3. Candidates       - several wordings combining the top tags and the location
    4. Selection        - each candidate scored for length, tag and location coverage

Usage:
    generator = SeoDescriptionGenerator(store, hierarchy, SeoVocabulary.from_config(config))
    generator.generate_description(item)           # skips if one already exists
    generator.generate_description(item, force=True)
"""
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

from core.metadata_store import MetadataStore
from core.place_hierarchy import LocationHierarchyManager
from core.seo_vocabulary import SeoVocabulary
from utils.logger import logDebug, logError, logInfo
from utils.text_utils import (
    alnum_tokens,
    contains_sequence,
    join_list,
    normalize,
    shorter_word_count,
    strip_html,
    tokens,
    trim_to_length,
    truncate_words,
    ucfirst,
    word_overlap,
)

__all__ = [
    "SeoDescriptionGenerator",
    "build_location_phrase",
    "build_seo_location",
    "filter_tags",
    "score_tags",
]

MAX_DESCRIPTION_LENGTH = 155
LOCATION_PHRASE_MAX = 80
WORD_OVERLAP_THRESHOLD = 0.8
SINGLE_WORD_OVERLAP_THRESHOLD = 1.0
MIN_TAG_LENGTH = 3
MAX_TAG_LENGTH = 24
TRUNCATE_WORDS = 23
PAIR_LOCATION_MAX = 20
TAXONOMY_PHRASE_LEVELS = 3
MAX_DESCRIPTION_TAGS = 7
TITLE_FALLBACK_WORDS = 10

PHOTO_METADATA_KEYS = ("camera", "location", "city", "state", "country", "GPS", "dateTimeOriginal")

BOILERPLATE_PENALTIES = {
    "explore detailed photography": 3,
    "experience the mood": 2,
    "high-resolution images": 2,
}

UNINFORMATIVE_WEATHER = ("", "unknown", "clear")

_PUNCTUATED = re.compile(r"[^a-z0-9 ]")


# ---------- Location phrase ----------
def terms_redundant(a: str, b: str) -> bool:
    """Substring match, or enough shared words (all of them for one-word terms)."""
    na, nb = normalize(a), normalize(b)
    if not na or not nb:
        return False
    if na in nb or nb in na:
        return True
    threshold = SINGLE_WORD_OVERLAP_THRESHOLD if shorter_word_count(a, b) == 1 else WORD_OVERLAP_THRESHOLD
    return word_overlap(a, b) >= threshold


def collapse_terms(terms: Iterable[str]) -> List[str]:
    """Drop each term made redundant by the term kept just before it (most specific first)."""
    kept: List[str] = []
    for term in terms:
        term = (term or "").strip()
        if not term:
            continue
        if kept and terms_redundant(kept[-1], term):
            continue
        kept.append(term)
    return kept


def cap_phrase(terms: List[str], max_length: int = LOCATION_PHRASE_MAX) -> str:
    terms = list(terms)
    while len(terms) > 1 and len(", ".join(terms)) > max_length:
        terms.pop()
    phrase = ", ".join(terms)
    if len(phrase) > max_length:
        phrase = trim_to_length(phrase, max_length)
    return phrase


def build_location_phrase(terms: Iterable[str], max_length: int = LOCATION_PHRASE_MAX) -> str:
    return cap_phrase(collapse_terms(terms), max_length)


def build_seo_location(location: str = "", city: str = "", state: str = "", country: str = "",
                       max_length: int = LOCATION_PHRASE_MAX) -> str:
    """Most specific combination of flat location fields that fits the budget."""
    location, city, state, country = [(v or "").strip() for v in (location, city, state, country)]

    combinations = []
    if location or city or state:
        combinations.append([location, city, state])
    if city and state:
        combinations.append([city, state])
    if location and state and len(location) <= PAIR_LOCATION_MAX:
        combinations.append([location, state])

    for combo in combinations:
        phrase = ", ".join(collapse_terms(combo))
        if phrase and len(phrase) <= max_length:
            return phrase

    for single in (state, city, location):
        if single and len(single) <= max_length:
            return single
    if location:
        return trim_to_length(location, max_length)
    if country and len(country) <= max_length:
        return country
    return ""


# ---------- Tag filtering ----------
def is_blacklisted(tag: str, vocab: SeoVocabulary) -> bool:
    low = tag.lower().strip()
    if low in vocab.blacklist_exact:
        return True
    tag_tokens = alnum_tokens(low)
    for pattern in vocab.blacklist_patterns:
        if _PUNCTUATED.search(pattern) or pattern != pattern.strip():
            if pattern in low:
                return True
        elif contains_sequence(tag_tokens, alnum_tokens(pattern)):
            return True
    return False


def has_priority_term(tag: str, vocab: SeoVocabulary) -> bool:
    tag_tokens = tokens(tag)
    for term in vocab.premium_terms + vocab.high_terms:
        for variant in vocab.variations(term):
            if contains_sequence(tag_tokens, tokens(variant)):
                return True
    return False


def is_location_redundant(tag: str, phrase: str, vocab: SeoVocabulary) -> bool:
    if not phrase:
        return False
    tag_norm = normalize(tag)
    phrase_tokens = tokens(phrase)
    components = [normalize(c) for c in phrase.split(",") if c.strip()]

    if tag_norm == normalize(phrase) or tag_norm in components:
        return True
    if vocab.is_region_name(tag):
        return True

    tag_tokens = tag_norm.split()
    overlaps = contains_sequence(phrase_tokens, tag_tokens) or any(
        contains_sequence(tag_tokens, c.split()) for c in components
    )
    if not overlaps:
        return False
    return not has_priority_term(tag, vocab)


def _dedupe_substrings(tags: List[str]) -> List[str]:
    cleaned = [str(t).strip() for t in tags if t is not None and str(t).strip()]
    norms = [normalize(t) for t in cleaned]
    result: List[str] = []
    seen = set()
    for i, tag in enumerate(cleaned):
        norm = norms[i]
        if not norm or norm in seen:
            continue
        words = norm.split()
        contained = any(
            j != i and len(other) > len(norm) and contains_sequence(other.split(), words)
            for j, other in enumerate(norms)
        )
        if contained:
            continue
        seen.add(norm)
        result.append(tag)
    return result


def _matches_place(tag: str, names: Iterable[str]) -> bool:
    tag_tokens = tokens(tag)
    for name in names:
        name_tokens = tokens(name)
        if not name_tokens:
            continue
        if tag_tokens == name_tokens:
            return True
        if contains_sequence(tag_tokens, name_tokens) or contains_sequence(name_tokens, tag_tokens):
            return True
    return False


def filter_tags(tags: List[str], location_phrase: str, ancestry: List[str], vocab: SeoVocabulary) -> List[str]:
    """Apply the tag filters in order; the original tag order is preserved."""
    result = _dedupe_substrings(tags or [])
    if ancestry:
        result = [t for t in result if not _matches_place(t, ancestry)]
    result = [t for t in result if not is_blacklisted(t, vocab)]
    result = [t for t in result if not is_location_redundant(t, location_phrase, vocab)]
    return [t for t in result if MIN_TAG_LENGTH <= len(t) <= MAX_TAG_LENGTH]


# ---------- Tag scoring ----------
def _matches_term(tag_tokens: List[str], term: str, vocab: SeoVocabulary) -> bool:
    return any(contains_sequence(tag_tokens, tokens(v)) for v in vocab.variations(term))


def _word_variation_in(words: List[str], text_tokens: List[str], vocab: SeoVocabulary) -> bool:
    for word in words:
        for variant in vocab.variations(word)[1:]:
            if contains_sequence(text_tokens, tokens(variant)):
                return True
    return False


def score_tag(tag: str, context: Dict[str, str], vocab: SeoVocabulary) -> int:
    tag_tokens = tokens(tag)
    tag_lower = tag.lower()
    words = [w for w in tag_tokens if len(w) > 2]
    score = 0

    for bonus, terms in ((15, vocab.premium_terms), (12, vocab.high_terms), (8, vocab.standard_terms)):
        if any(_matches_term(tag_tokens, term, vocab) for term in terms):
            score += bonus

    title_tokens = tokens(context.get("title"))
    if contains_sequence(title_tokens, tag_tokens):
        score += 25
    elif any(w in title_tokens for w in words) or _word_variation_in(words, title_tokens, vocab):
        score += 15

    content = context.get("content") or ""
    content_lower = content.lower()
    content_tokens = tokens(content)
    if contains_sequence(content_tokens, tag_tokens):
        score += 15
    elif tag_lower in content_lower:
        score += 12
    elif any(w in content_tokens for w in words):
        score += 10
    elif _word_variation_in(words, content_tokens, vocab):
        score += 8
    elif any(w in content_lower for w in words):
        score += 5

    excerpt = context.get("excerpt") or ""
    excerpt_tokens = tokens(excerpt)
    if contains_sequence(excerpt_tokens, tag_tokens) or (excerpt and tag_lower in excerpt.lower()):
        score += 12
    elif any(w in excerpt_tokens for w in words):
        score += 8

    weather = (context.get("weather") or "").lower()
    if weather and tag_lower in weather:
        score += 5

    norm = normalize(tag)
    if norm in vocab.canonical_terms:
        score += 3
    if score == 0 and norm in vocab.minimum_terms:
        score = 1
    return score


def score_tags(tags: List[str], context: Dict[str, str], vocab: SeoVocabulary) -> List[Dict]:
    """Score every tag, drop zero scores, stable-sort by score descending."""
    scored = [{"tag": tag, "score": score_tag(tag, context, vocab)} for tag in tags]
    scored = [s for s in scored if s["score"] > 0]
    return sorted(scored, key=lambda s: s["score"], reverse=True)


# ---------- Generator ----------
class SeoDescriptionGenerator:
    def __init__(self, store: MetadataStore, hierarchy: Optional[LocationHierarchyManager],
                 vocab: Optional[SeoVocabulary] = None, max_length: int = MAX_DESCRIPTION_LENGTH):
        self.store = store
        self.hierarchy = hierarchy
        self.vocab = vocab or SeoVocabulary()
        self.max_length = max_length

    def location_context(self, item_id) -> Dict:
        node = self.hierarchy.most_specific_node(item_id) if self.hierarchy else None
        if node is not None:
            chain = self.hierarchy.chain_names(node["id"])
            nearest = list(reversed(chain))[:TAXONOMY_PHRASE_LEVELS]
            terms = collapse_terms(nearest)
            flat = self.hierarchy.flatten(node["id"])
            return {
                "phrase": cap_phrase(terms),
                "terms": terms,
                "city": flat["city"] or self.store.get(item_id, "city", ""),
                "state": flat["state"] or self.store.get(item_id, "state", ""),
                "ancestry": chain,
            }

        city = self.store.get(item_id, "city", "") or ""
        state = self.store.get(item_id, "state", "") or ""
        phrase = build_seo_location(
            self.store.get(item_id, "location", "") or "",
            city,
            state,
            self.store.get(item_id, "country", "") or "",
        )
        return {
            "phrase": phrase,
            "terms": [t.strip() for t in phrase.split(",") if t.strip()],
            "city": city,
            "state": state,
            "ancestry": [],
        }

    def _weather_phrase(self, item_id) -> Optional[str]:
        summary = self.store.get(item_id, "wXSummary") or ""
        if normalize(summary) in UNINFORMATIVE_WEATHER:
            return None
        return summary.lower()

    def _with_location(self, prefix: str, location: Dict) -> str:
        options = [location["phrase"]] + [t for t in location["terms"] if t != location["phrase"]]
        for option in options:
            if not option:
                continue
            text = f"{prefix} from {option}."
            if len(text) <= self.max_length:
                return text
        return f"{prefix}."

    def candidate_descriptions(self, tags: List[str], location: Dict, weather: Optional[str],
                               title: str = "") -> List[str]:
        candidates: List[str] = []
        phrase = location["phrase"]

        def tag_text(n: int) -> str:
            return ucfirst(join_list(tags[:n]))

        if tags:
            for n in (5, 4, 3, 2, 1):
                if len(tags) >= n:
                    candidates.append(self._with_location(f"{tag_text(n)} photography", location))
            if len(tags) >= 5:
                candidates.append(self._with_location(
                    f"Photography featuring {join_list(tags[:MAX_DESCRIPTION_TAGS])}", location))
            if phrase and len(tags) >= 3:
                location_first = f"{ucfirst(phrase)} {join_list(tags[:3])} photography."
                if len(location_first) <= self.max_length:
                    candidates.append(location_first)
            state = location["state"]
            if state and state != phrase:
                n = min(3, len(tags))
                candidates.append(f"{tag_text(n)} photography from {state}.")
            if weather:
                n = min(3, len(tags))
                plain = f"{tag_text(n)} photography with {weather} conditions."
                located = f"{tag_text(n)} photography from {phrase} with {weather} conditions."
                candidates.append(located if phrase and len(located) <= self.max_length else plain)
            candidates.append(f"{tag_text(min(3, len(tags)))} photography.")
        elif phrase:
            candidates.append(f"Photography from {phrase}.")
        elif title:
            short_title = truncate_words(title.strip(), TITLE_FALLBACK_WORDS, "").rstrip(" .,:;")
            candidates.append(f"Photography: {short_title}.")

        unique: List[str] = []
        for c in candidates:
            if c not in unique:
                unique.append(c)
        return unique

    def score_candidate(self, text: str, tags: List[str], location: Dict) -> int:
        score = 0
        length = len(text)
        if length > self.max_length:
            score -= 10
        elif length >= 120:
            score += 5
        elif length >= 100:
            score += 3
        elif length >= 80:
            score += 1

        low = text.lower()
        present = [t for t in tags if t.lower() in low]
        score += 12 * len(present)
        if len(present) >= 3:
            score += 5

        phrase, city, state = location["phrase"], location["city"], location["state"]
        has_location = bool(phrase) and phrase in text
        if has_location:
            score += 6
        if state and state in text:
            score += 3
            has_location = True
        if city and state and city in text and state in text:
            score += 2
        if not has_location:
            has_location = any(t in text for t in location["terms"])
        if present and has_location:
            score += 8

        for boilerplate, penalty in BOILERPLATE_PENALTIES.items():
            if boilerplate in low:
                score -= penalty
        return score

    def select_best(self, candidates: List[str], tags: List[str], location: Dict) -> Optional[str]:
        best, best_score = None, None
        for candidate in candidates:
            score = self.score_candidate(candidate, tags, location)
            if best_score is None or score > best_score:
                best, best_score = candidate, score
        if best is None:
            return None
        if len(best) > self.max_length:
            best = truncate_words(best, TRUNCATE_WORDS)
            best = trim_to_length(best, self.max_length)
        return best

    def build_description(self, item: Dict) -> Optional[str]:
        item_id = str(item.get("id"))
        location = self.location_context(item_id)
        weather = self._weather_phrase(item_id)

        tags = filter_tags(list(item.get("tags") or []), location["phrase"], location["ancestry"], self.vocab)
        context = {
            "title": strip_html(item.get("title", "")),
            "content": strip_html(item.get("content", "")),
            "excerpt": strip_html(item.get("excerpt", "")),
            "weather": weather or "",
        }
        scored = score_tags(tags, context, self.vocab)
        top_tags = [s["tag"] for s in scored][:MAX_DESCRIPTION_TAGS]
        logDebug(f"Item {item_id}: location '{location['phrase']}', tags {scored}")

        candidates = self.candidate_descriptions(top_tags, location, weather, context["title"])
        return self.select_best(candidates, top_tags, location)

    def generate_description(self, item: Dict, force: bool = False) -> Optional[str]:
        item_id = str(item.get("id"))
        existing = self.store.get(item_id, "seo_description")
        if existing and not force:
            logDebug(f"Item {item_id}: SEO description already present")
            return existing

        try:
            description = self.build_description(item)
        except Exception as e:
            logError(f"SEO description failed for item {item_id}: {e}")
            return None

        if not description:
            logDebug(f"Item {item_id}: nothing to describe")
            return None
        if force:
            self.store.set(item_id, "seo_description", description)
        else:
            self.store.set_if_absent(item_id, "seo_description", description)
        logInfo(f"📝 Item {item_id}: {description}")
        return description

    # ---------- Bulk ----------
    def has_photo_metadata(self, item_id) -> bool:
        return any(self.store.exists(item_id, key) for key in PHOTO_METADATA_KEYS)

    def bulk_generate(self, items: List[Dict], force: bool = False) -> Dict[str, int]:
        stats = {"processed": 0, "generated": 0, "skipped": 0, "errors": 0}
        for item in items:
            item_id = str(item.get("id"))
            if not self.has_photo_metadata(item_id):
                continue
            stats["processed"] += 1
            if not force and self.store.exists(item_id, "seo_description"):
                stats["skipped"] += 1
                continue
            if self.generate_description(item, force=force):
                stats["generated"] += 1
            else:
                stats["errors"] += 1
        return stats

    def statistics(self, items: List[Dict]) -> Dict[str, int]:
        total = len(items)
        with_descriptions = sum(1 for item in items if self.store.exists(str(item.get("id")), "seo_description"))
        return {
            "total_posts": total,
            "with_descriptions": with_descriptions,
            "without_descriptions": total - with_descriptions,
        }
