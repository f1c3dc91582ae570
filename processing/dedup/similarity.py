"""
Field-level similarity functions. All return a score in [0, 1].
"""

from typing import Optional

from processing.dedup.normalizer import normalize_key, tokenize

PREFIX_SCALE = 0.1
MAX_PREFIX = 4


def jaro_similarity(s1: str, s2: str) -> float:
    """
    Jaro similarity: (m/|s1| + m/|s2| + (m - t/2)/m) / 3.

    Each character of s1 takes the first unmatched equal character of s2
    within floor(max(|s1|, |s2|) / 2) - 1 positions. t counts matched
    characters that differ when both matched sequences are read in order;
    t/2 is kept fractional, so an odd t costs half a transposition.
    """
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    window = max(0, max(len(s1), len(s2)) // 2 - 1)
    s1_matched = [False] * len(s1)
    s2_matched = [False] * len(s2)

    matches = 0
    for i, c in enumerate(s1):
        start = max(0, i - window)
        end = min(i + window + 1, len(s2))
        for j in range(start, end):
            if not s2_matched[j] and s2[j] == c:
                s1_matched[i] = True
                s2_matched[j] = True
                matches += 1
                break

    if matches == 0:
        return 0.0

    s1_sequence = [c for c, matched in zip(s1, s1_matched) if matched]
    s2_sequence = [c for c, matched in zip(s2, s2_matched) if matched]
    transpositions = sum(1 for c1, c2 in zip(s1_sequence, s2_sequence) if c1 != c2)

    return (
        matches / len(s1)
        + matches / len(s2)
        + (matches - transpositions / 2) / matches
    ) / 3


def jaro_winkler(s1: str, s2: str) -> float:
    """
    Case-insensitive Jaro-Winkler.

    Every one of the first four characters shared as a prefix adds
    0.1 * (1 - jaro). The bonus is not gated on jaro > 0.7.
    """
    a = s1.lower()
    b = s2.lower()
    if b < a:
        a, b = b, a

    jaro = jaro_similarity(a, b)

    prefix = 0
    for c1, c2 in zip(a[:MAX_PREFIX], b[:MAX_PREFIX]):
        if c1 != c2:
            break
        prefix += 1

    return jaro + prefix * PREFIX_SCALE * (1 - jaro)


def token_overlap_similarity(text1: Optional[str], text2: Optional[str]) -> float:
    """Jaccard coefficient of the significant words in two texts."""
    set1 = tokenize(text1)
    set2 = tokenize(text2)

    if not set1 or not set2:
        return 0.0

    return len(set1 & set2) / len(set1 | set2)


def numeric_match(
    a: Optional[float],
    b: Optional[float],
    tolerance: float,
) -> float:
    """1.0 if a and b are within a relative tolerance of their mean, else 0.0."""
    if not a or not b:
        return 0.0
    diff = abs(a - b)
    avg = (abs(a) + abs(b)) / 2
    return 1.0 if diff / avg <= tolerance else 0.0


def exact_match(a: Optional[str], b: Optional[str]) -> float:
    """Case-insensitive equality. Missing values never match."""
    key_a = normalize_key(a)
    key_b = normalize_key(b)
    if key_a is None or key_b is None:
        return 0.0
    return 1.0 if key_a == key_b else 0.0
