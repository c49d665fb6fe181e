"""
TCG Vault — Search Query Classifier

Decides whether a free-text query is about sealed products, single cards, or
is ambiguous, by matching two disjoint keyword lists:

- sealed only  → QueryClass.SEALED
- single only  → QueryClass.SINGLE
- both/neither → QueryClass.AMBIGUOUS

Keywords match on word boundaries ("v" does not fire inside "vmax"), case
insensitive. Sealed keywords also match their plurals ("booster boxes",
"tins"). A sealed product whose name contains a rarity keyword (e.g. a
"Charizard ex Premium Collection") classifies as ambiguous and is searched
on both paths.

The router depends only on the QueryClassifier protocol; swap in another
implementation to change the heuristic.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Protocol

from tcgvault.config import QueryClass

SEALED_KEYWORDS: tuple[str, ...] = (
    "booster box", "booster pack", "elite trainer box", "collection box",
    "bundle", "tin", "display", "box", "pack", "collection", "premium",
    "starter deck", "theme deck", "deck box", "premium collection",
    "special collection", "limited edition", "exclusive", "promo box", "etb",
)

SINGLE_KEYWORDS: tuple[str, ...] = (
    "ex", "gx", "v", "vmax", "vstar", "break", "mega", "prism star",
    "tag team", "rainbow", "shiny", "alternate art", "character rare",
    "illustration rare", "special illustration rare", "ultra rare",
    "hyper rare", "amazing rare", "radiant", "tera", "prime", "legend",
    "lv.x", "delta", "crystal", "shining", "gold star", "cracked ice",
    "cosmos", "holo", "reverse", "foil", "first edition", "shadowless",
    "secret rare", "rare", "uncommon", "common",
)


class QueryClassifier(Protocol):
    def classify(self, query: str) -> QueryClass: ...


def _compile(keywords: Iterable[str], plurals: bool = False) -> re.Pattern[str]:
    # Longest first so multi-word terms win over their fragments
    ordered = sorted({k.lower() for k in keywords}, key=len, reverse=True)
    alternation = "|".join(re.escape(k) for k in ordered)
    # The group is the bare keyword; findall() reports it without the suffix
    suffix = "(?:es|s)?" if plurals else ""
    return re.compile(rf"(?<![a-z0-9])({alternation}){suffix}(?![a-z0-9])")


class KeywordQueryClassifier:
    """
    Keyword-list classifier.

    Usage:
        classifier = KeywordQueryClassifier()
        classifier.classify("elite trainer box")   # QueryClass.SEALED
    """

    def __init__(
        self,
        sealed_keywords: Iterable[str] = SEALED_KEYWORDS,
        single_keywords: Iterable[str] = SINGLE_KEYWORDS,
    ):
        sealed = {k.lower() for k in sealed_keywords}
        single = {k.lower() for k in single_keywords}
        overlap = sealed & single
        if overlap:
            raise ValueError(f"keyword lists must be disjoint, both contain: {sorted(overlap)}")
        self._sealed = _compile(sealed, plurals=True)
        self._single = _compile(single)

    def matches(self, query: str) -> tuple[list[str], list[str]]:
        """Sealed and single keywords found in the query."""
        text = query.lower()
        return self._sealed.findall(text), self._single.findall(text)

    def classify(self, query: str) -> QueryClass:
        sealed, single = self.matches(query)
        if sealed and not single:
            return QueryClass.SEALED
        if single and not sealed:
            return QueryClass.SINGLE
        return QueryClass.AMBIGUOUS
