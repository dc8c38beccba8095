from typing import Iterable, List
import re

from rapidfuzz import fuzz

#candidates scoring at or above this are treated as the same term
DUPLICATE_THRESHOLD = 95.0

#collapse punctuation and whitespace before comparing terms
def normalise_term(s: str) -> str:
    if not s:
        return ""

    s = re.sub(r"[\W_]+", " ", s)
    s = re.sub(r"\s+", " ", s)

    return s.lower().strip()

#how alike two candidate terms are, 0-100
def term_similarity(a: str, b: str) -> float:
    an = normalise_term(a)
    bn = normalise_term(b)

    if not an or not bn:
        return 0.0

    return float(fuzz.token_sort_ratio(an, bn))

#drop blanks and near-duplicates, keeping the first spelling seen
def clean_candidates(raw: Iterable[object], threshold: float = DUPLICATE_THRESHOLD) -> List[str]:
    kept: List[str] = []

    for item in raw:
        if not isinstance(item, str):
            continue

        term = " ".join(item.split())
        if not normalise_term(term):
            continue

        if any(term_similarity(term, k) >= threshold for k in kept):
            continue

        kept.append(term)

    return kept
