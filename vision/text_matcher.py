"""
Text Matcher - Raid Scanner
===========================
Turns noisy OCR output into a catalog match.

Normalization folds case, whitespace and the usual OCR glyph confusions.
Matching walks a fixed ladder and stops at the first tier that hits:

    exact (1.0) -> substring (0.9) -> all words present (0.85) -> edit distance

Category/rarity banner lines ("COMMON SCRAP", "EPIC RIFLE") are decoys and
are rejected before matching. A trailing roman numeral is part of an item's
identity: "Weapon I" never matches "Weapon III".
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger("RaidScanner")

ROMAN_NUMERALS = ("i", "ii", "iii", "iv", "v", "vi", "vii", "viii", "ix", "x")
_ROMAN_SUFFIX_RE = re.compile(r"\b(i|ii|iii|iv|v|vi|vii|viii|ix|x)\b\s*$", re.IGNORECASE)
_ROMAN_TOKEN_RE = re.compile(r"^(i|ii|iii|iv|v|vi|vii|viii|ix|x)$", re.IGNORECASE)
_RARITY_RE = re.compile(r"\b(common|uncommon|rare|epic|legendary|mythic)\b")
_CATEGORY_RE = re.compile(
    r"\b(lmg|smg|ar|rifle|shotgun|pistol|sniper|ammo|magazine|armor|helmet|"
    r"backpack|equipment|tool|resource|consumable|category)\b"
)
_STAT_LINE_RE = re.compile(
    r"\b(Has|Durability|Ammo|Magazine|Firing|Armor|Special|Penetration|Type|Category|Equipment)\b",
    re.IGNORECASE,
)
_DESCRIPTION_WORDS = (
    "fires", "has ", "increased", "reduced", "damage", "accuracy", "headshot",
    "projectile", "detonate", "recovery", "magazine", "durability",
)


class MatchMethod(Enum):
    """Which tier (or hash search) produced a match"""

    EXACT = "exact"
    SUBSTRING = "substring"
    WORD_SET = "word_set"
    FUZZY = "fuzzy"
    HASH = "hash"

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class MatchCandidate:
    """Best catalog match for one scan"""

    item: Any
    confidence: float
    method: MatchMethod
    matched_text: str = ""

    @property
    def is_fuzzy(self):
        return self.method is MatchMethod.FUZZY


# ===== Normalization =====

def clean_line(line):
    """Keep letters, digits, spaces, '-' and "'"; collapse whitespace. Case is kept."""
    cleaned = re.sub(r"[^A-Za-z0-9\s\-']", " ", line or "")
    return re.sub(r"\s+", " ", cleaned).strip()


def normalize_text(text):
    """
    Normalize a name or OCR line for comparison.

    Lowercase, collapse whitespace, map | and 1 to i and 0 to o, replace any
    character outside [a-z0-9 -'] with a space.
    """
    if not text or not text.strip():
        return ""
    text = re.sub(r"\s+", " ", text).strip().lower()
    text = text.replace("|", "i").replace("1", "i").replace("0", "o")
    text = re.sub(r"[^a-z0-9\s\-']", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def roman_suffix(normalized):
    """Trailing standalone roman numeral (i..x) of a normalized string, or None"""
    if not normalized:
        return None
    match = _ROMAN_SUFFIX_RE.search(normalized)
    return match.group(1).lower() if match else None


def levenshtein_distance(a, b):
    """Classic edit distance with two rolling rows; every edit costs 1"""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i] + [0] * len(b)
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current[j] = min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
        previous = current
    return previous[-1]


def is_category_banner(line):
    """
    True for rarity/category classifier lines such as "COMMON SCRAP".

    A banner has a rarity word and either a category word or at most three
    words in total.
    """
    cleaned = clean_line(line)
    if not cleaned:
        return False
    lower = cleaned.lower()
    if not _RARITY_RE.search(lower):
        return False
    return bool(_CATEGORY_RE.search(lower)) or len(cleaned.split(" ")) <= 3


# ===== Title heuristics =====

def _letter_counts(text):
    letters = sum(1 for ch in text if ch.isalpha())
    upper = sum(1 for ch in text if ch.isalpha() and ch.isupper())
    lower = sum(1 for ch in text if ch.isalpha() and ch.islower())
    return letters, upper, lower


def score_title_line(cleaned):
    """
    Title score of one cleaned line.

    2 x uppercase ratio + min(1, len / 18) - 0.8 for description words,
    +0.15 when the line ends in a roman numeral. None for lines that cannot
    be a title.
    """
    if len(cleaned) < 4:
        return None
    letters, upper, _ = _letter_counts(cleaned)
    if letters < 3:
        return None
    upper_ratio = upper / float(max(1, letters))
    length_score = min(1.0, len(cleaned) / 18.0)
    lower_line = cleaned.lower()
    penalty = 0.8 if any(word in lower_line for word in _DESCRIPTION_WORDS) else 0.0
    if roman_suffix(lower_line):
        length_score += 0.15
    return upper_ratio * 2.0 + length_score - penalty


def _trim_to_title_tokens(line):
    """Keep leading title-like tokens, stopping at the first lowercase-heavy one"""
    kept = []
    for token in line.split():
        token = token.strip("-'\"")
        if not token:
            continue
        if _ROMAN_TOKEN_RE.match(token):
            kept.append(token)
            continue
        letters, upper, lower = _letter_counts(token)
        upper_ratio = upper / float(letters) if letters else 0.0
        lower_ratio = lower / float(letters) if letters else 0.0
        title_like = (letters > 0 and upper_ratio >= 0.70) or (letters == 0 and len(token) <= 3)
        if not kept:
            if title_like:
                kept.append(token)
            continue
        if not title_like and lower_ratio > 0.40:
            break
        kept.append(token)
    return re.sub(r"\s+", " ", " ".join(kept)).strip()


def extract_likely_title(ocr_text):
    """
    Pick the line of multi-line OCR output most likely to be the item title.

    Item titles are rendered in uppercase, so uppercase-heavy lines win.
    Stat lines and category banners are skipped. When OCR merged the title
    with the description, the winner is trimmed to its leading title tokens.

    Args:
        ocr_text (str): Raw OCR text (newlines preserved)

    Returns:
        str: Best title candidate, or "" for empty input
    """
    if not ocr_text or not ocr_text.strip():
        return ""

    best_line = ""
    best_score = float("-inf")
    for raw in ocr_text.split("\n"):
        cleaned = clean_line(raw)
        if _STAT_LINE_RE.search(cleaned) or is_category_banner(cleaned):
            continue
        score = score_title_line(cleaned)
        if score is not None and score > best_score:
            best_score = score
            best_line = cleaned

    if not best_line:
        best_line = re.sub(r"\s+", " ", ocr_text).strip()

    candidate = _trim_to_title_tokens(best_line)
    return candidate if len(candidate) >= 3 else best_line


def extract_title_from_title_region(ocr_text, min_upper_ratio=0.55):
    """
    First uppercase-heavy, non-banner line of the tooltip's title band.

    Returns:
        str: Title line, or "" when no line qualifies
    """
    if not ocr_text:
        return ""
    for raw in ocr_text.split("\n"):
        cleaned = clean_line(raw)
        if len(cleaned) < 4:
            continue
        letters, upper, _ = _letter_counts(cleaned)
        if letters < 3:
            continue
        if upper / float(letters) < min_upper_ratio:
            continue
        if is_category_banner(cleaned):
            continue
        return cleaned
    return ""


def candidate_lines(*ocr_texts, min_length=3):
    """
    Cleaned, de-duplicated (case-insensitive) lines from one or more OCR texts.

    Yields:
        str: Each usable line in first-seen order
    """
    seen = set()
    for text in ocr_texts:
        if not text or not text.strip():
            continue
        for raw in text.split("\n"):
            cleaned = clean_line(raw)
            if len(cleaned) < min_length:
                continue
            key = cleaned.lower()
            if key in seen:
                continue
            seen.add(key)
            yield cleaned


# ===== Matching =====

@dataclass(frozen=True)
class _Entry:
    item: Any
    normalized: str
    roman: Optional[str]
    words: tuple


class FuzzyMatcher:
    """
    Layered OCR-text-to-catalog matcher.

    The catalog is captured as an immutable list of pre-normalized entries
    at construction; build a new matcher when the catalog changes.
    """

    def __init__(self, items, settings=None, name_getter=None):
        """
        Args:
            items: Iterable of catalog entries (anything with a name)
            settings (dict): fuzzy_min_confidence, fuzzy_min_allowed_distance,
                fuzzy_distance_ratio overrides
            name_getter (callable): item -> name (defaults to item.name)
        """
        settings = settings or {}
        self.min_confidence = settings.get("fuzzy_min_confidence", 0.5)
        self.min_allowed_distance = settings.get("fuzzy_min_allowed_distance", 4)
        self.distance_ratio = settings.get("fuzzy_distance_ratio", 0.4)
        get_name = name_getter or (lambda item: item.name)

        entries = []
        for item in items:
            name = get_name(item) or ""
            normalized = normalize_text(name)
            if not normalized:
                continue
            entries.append(
                _Entry(item, normalized, roman_suffix(normalized), tuple(normalized.split(" ")))
            )
        self._entries = tuple(entries)

    def __len__(self):
        return len(self._entries)

    def _allowed(self, entry, query_roman):
        if query_roman is None or entry.roman is None:
            return True
        return entry.roman == query_roman

    def match(self, text):
        """
        Match one line of text against the catalog.

        Args:
            text (str): OCR line (banner lines are rejected)

        Returns:
            MatchCandidate or None
        """
        if not text or not text.strip() or is_category_banner(text):
            return None
        query = normalize_text(text)
        if not query:
            return None
        query_roman = roman_suffix(query)
        entries = [e for e in self._entries if self._allowed(e, query_roman)]

        # 1. Exact
        for entry in entries:
            if entry.normalized == query:
                return MatchCandidate(entry.item, 1.0, MatchMethod.EXACT, text)

        # 2. Substring, either direction
        for entry in entries:
            if entry.normalized in query or query in entry.normalized:
                return MatchCandidate(entry.item, 0.9, MatchMethod.SUBSTRING, text)

        # 3. Every catalog word (len >= 2) appears in the query
        for entry in entries:
            words = [w for w in entry.words if len(w) >= 2]
            if not words or not any(len(w) >= 3 for w in words):
                continue
            if all(word in query for word in words):
                return MatchCandidate(entry.item, 0.85, MatchMethod.WORD_SET, text)

        # 4. Edit distance
        best_entry = None
        best_distance = None
        for entry in entries:
            distance = levenshtein_distance(query, entry.normalized)
            max_allowed = max(
                self.min_allowed_distance,
                int(min(len(query), len(entry.normalized)) * self.distance_ratio + 1e-9),
            )
            if distance > max_allowed:
                continue
            if best_distance is None or distance < best_distance:
                best_distance = distance
                best_entry = entry

        if best_entry is None:
            return None
        max_len = max(len(query), len(best_entry.normalized))
        confidence = max(0.0, 1.0 - best_distance / float(max_len))
        if confidence < self.min_confidence:
            logger.debug(
                f"[TextMatch] Fuzzy best '{best_entry.normalized}' for '{query}' "
                f"below threshold ({confidence:.2f})"
            )
            return None
        return MatchCandidate(best_entry.item, confidence, MatchMethod.FUZZY, text)

    def match_lines(self, *ocr_texts):
        """
        Match every candidate line from one or more OCR texts.

        Returns:
            MatchCandidate: Highest confidence over all lines (ties keep the
                first line), or None
        """
        best = None
        for line in candidate_lines(*ocr_texts):
            if is_category_banner(line):
                continue
            candidate = self.match(line)
            if candidate is None:
                continue
            if best is None or candidate.confidence > best.confidence:
                best = candidate
        return best


def match_text(raw_ocr_text, catalog, settings=None):
    """
    Match raw (possibly multi-line) OCR text against a catalog.

    Args:
        raw_ocr_text (str): OCR output
        catalog: FuzzyMatcher, or an iterable of named catalog items

    Returns:
        MatchCandidate or None
    """
    matcher = catalog if isinstance(catalog, FuzzyMatcher) else FuzzyMatcher(catalog, settings)
    return matcher.match_lines(raw_ocr_text)
