"""Platform-specific detector for content promoting animal products.

Produces the optional :class:`DomainDetection` signal that callers hand to
the decision engine.  Pure pattern matching, no external calls.
"""

from __future__ import annotations

import re
from typing import Optional

from trustgate.moderation.models import DomainDetection, Severity

_MEAT = r"(meat|beef|pork|chicken|lamb|veal|steak|bacon|ham|sausage|turkey|duck|fish|seafood|shrimp|lobster|crab|salmon|tuna)"
_DAIRY = r"(milk|cheese|butter|cream|yogurt|eggs?|dairy)"
_ENJOY = (
    r"(eat|ate|eating|love|loved|loving|like|liked|liking|enjoy|enjoyed|enjoying|"
    r"craving|crave|craved|miss|missed|missing|want|wanted|wanting)"
)
_TASTY = r"(is|was|tastes?)\s+(good|great|amazing|delicious|tasty|yummy|the\s+best)"


def _compile(patterns: list[str]) -> list[re.Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


_DIRECT_MEAT = _compile([
    rf"\b{_ENJOY}\s+(some\s+)?{_MEAT}\b",
    rf"\b{_MEAT}\s+{_TASTY}\b",
    rf"\b(had|have|got)\s+(some\s+)?{_MEAT}\b",
])

_DAIRY_EGGS = _compile([
    rf"\b(eat|ate|eating|love|loved|loving|like|liked|liking|enjoy|enjoyed|enjoying|"
    rf"drink|drank|drinking|miss|missed|missing)\s+(some\s+)?{_DAIRY}\b",
    rf"\b{_DAIRY}\s+{_TASTY}\b",
    rf"\breal\s+{_DAIRY}\b",
])

_STATEMENTS = _compile([
    r"\bvegan(s|ism)?\s+(is|are|was|were)\s+(bad|wrong|unhealthy|stupid|dumb|annoying|extreme)\b",
    r"\b(hate|dislike|don'?t\s+like)\s+vegan(s|ism)?\b",
    r"\bvegans?\s+(are|is)\s+(pushy|preachy|annoying|a\s+cult|cult)\b",
    r"\b(can'?t|cannot)\s+be\s+vegan\b",
    r"\bvegan(ism)?\s+(doesn'?t|does\s+not|won'?t)\s+work\b",
])

_EXPLOITATION = _compile([
    r"\b(went|going|go)\s+(hunting|fishing)\b",
    r"\b(killed|shot|caught)\s+(a|an|some|the)?\s*(deer|fish|duck|turkey|rabbit|animal)\b",
    r"\bfur\s+(coat|jacket|clothing)\s+(is|looks|feels)\b",
])

_TYPOS = _compile([
    rf"\b{_ENJOY}\s+meet\b",
    r"\b(love|like|enjoy|miss)\s+(stake|baccon|checken)\b",
])

PATTERN_FAMILIES: dict[str, list[re.Pattern[str]]] = {
    "direct_meat": _DIRECT_MEAT,
    "dairy": _DAIRY_EGGS,
    "statements": _STATEMENTS,
    "exploitation": _EXPLOITATION,
    "typos": _TYPOS,
}


_PAST_STANCE = re.compile(
    r"\b(i\s+used\s+to|i\s+once|back\s+when\s+i|i\s+(?:previously|formerly)|"
    r"i\s+was\s+(?:once\s+)?(?:a\s+)?(?:big\s+)?(?:meat|cheese|dairy)|"
    r"before\s+(?:going|becoming|i\s+went|i\s+became)\s+vegan)\b",
    re.IGNORECASE,
)
_PRESENT_STANCE = re.compile(
    r"\b(now\s+i|but\s+now|i'?m\s+now|now\s+i'?m|today\s+i|these\s+days|nowadays|"
    r"i\s+no\s+longer|not\s+anymore|i\s+(?:have|'ve)\s+since|ever\s+since)\b",
    re.IGNORECASE,
)


def present_clause(text: str) -> Optional[str]:
    """Return the part of a "used to ..., now ..." narrative from the present marker on.

    *None* when *text* has no past stance followed by a present stance.
    """
    past = _PAST_STANCE.search(text)
    if past is None:
        return None
    present = _PRESENT_STANCE.search(text, past.end())
    if present is None:
        return None
    return text[present.start():]


def _family_hits(text: str, patterns: list[re.Pattern[str]]) -> bool:
    return any(p.search(text) for p in patterns)


def _find_matches(text: str) -> list[str]:
    matches: list[str] = []
    for patterns in PATTERN_FAMILIES.values():
        for pattern in patterns:
            for m in pattern.finditer(text):
                if m.group(0) not in matches:
                    matches.append(m.group(0))
    return matches


def is_transformation_narrative(text: str) -> bool:
    """Return True for "I used to ..., now I ..." narratives whose present clause is clean.

    A present clause that itself promotes animal products or attacks vegans
    ("I used to be vegan, but now I eat steak") is not a transformation.
    """
    clause = present_clause(text)
    return clause is not None and not _find_matches(clause)


def detect_domain_content(text: str) -> DomainDetection:
    """Scan *text* and grade how strongly it promotes animal products.

    * high: three or more distinct matches, or any anti-vegan statement or
      animal-exploitation match
    * medium: meat or dairy/egg matches
    * low: only misspelled meat references matched

    In a "used to ..., now ..." narrative only the present clause is scanned:
    past-tense mentions are not promotion, present-tense ones are.
    """
    clause = present_clause(text)
    scanned = clause if clause is not None else text

    matches = _find_matches(scanned)
    if not matches:
        return DomainDetection()

    if (
        len(matches) >= 3
        or _family_hits(scanned, _STATEMENTS)
        or _family_hits(scanned, _EXPLOITATION)
    ):
        severity = Severity.high
    elif _family_hits(scanned, _DIRECT_MEAT) or _family_hits(scanned, _DAIRY_EGGS):
        severity = Severity.medium
    else:
        severity = Severity.low
    return DomainDetection(detected=True, severity=severity, matches=tuple(matches))
