"""
TCG Vault — Expansion ↔ CSV-Mirror Group Mapping

Static, hand-maintained bidirectional table between catalog expansion ids
('sv01', 'swsh07', ...) and the CSV-mirror's numeric group ids. Update it
manually when a new set releases; runtime additions via add_mapping() last
for the life of the process only.

Source of group ids: https://tcgcsv.com/tcgplayer/3/groups
"""

from __future__ import annotations

from typing import Any

import structlog

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Known mappings — expansion id → group id
# ---------------------------------------------------------------------------
KNOWN_GROUP_IDS: dict[str, int] = {
    # Mega Evolution
    "me01": 24380, "me02": 24448, "mep": 24451, "mee": 24461,
    # Scarlet & Violet
    "sv10": 24269, "sv09": 24073, "sv08": 23651, "sv07": 23537,
    "sv06": 23473, "sv05": 23381, "sv04": 23286, "sv03": 23143,
    "sv02": 23072, "sv01": 23001,
    "pre": 23821, "sfa": 23529, "paf": 23353, "mew": 23237,
    "blk": 24325, "wht": 24326,
    # Sword & Shield
    "swsh12": 22868, "swsh11": 22811, "swsh10": 22732, "swsh09": 22649,
    "swsh08": 22561, "swsh07": 22462, "swsh06": 22390, "swsh05": 22318,
    "swsh045": 22280, "swsh04": 22197, "swsh035": 22144, "swsh03": 22066,
    "swsh02": 21993, "swsh01": 21901,
    # Sun & Moon
    "sm12": 21702, "sm11": 21618, "sm10": 21524, "sm09": 21441,
    "sm08": 21376, "sm075": 21296, "sm07": 21233, "sm06": 21148,
    "sm05": 21069, "sm04": 20984, "sm035": 20914, "sm03": 20858,
    "sm02": 20758, "sm01": 20671,
    # XY
    "xy12": 20535, "xy11": 20466, "xy10": 20387, "xy09": 20308,
    "xy08": 20218, "xy07": 20137, "xy06": 20057, "xy05": 19977,
    "xy04": 19898, "xy03": 19812, "xy02": 19723, "xy01": 19636,
    # Black & White
    "bw11": 7829, "bw10": 7612, "bw09": 7552, "bw08": 7490,
    "bw07": 7404, "bw06": 7346, "bw05": 7282, "bw04": 7224,
    "bw03": 7166, "bw02": 7106, "bw01": 7052,
    # HeartGold & SoulSilver, Platinum, Diamond & Pearl
    "hgss04": 6988, "hgss03": 6931, "hgss02": 6878, "hgss01": 6816, "col": 7050,
    "pl04": 6743, "pl03": 6685, "pl02": 6625, "pl01": 6567,
    "dp07": 6507, "dp06": 6446, "dp05": 6386, "dp04": 6324,
    "dp03": 6264, "dp02": 6198, "dp01": 6140,
    # EX
    "pk": 1445, "df": 1443, "cg": 1444, "hp": 1448, "lm": 1437, "ds": 1438,
    "uf": 1435, "em": 1449, "dx": 1436, "trr": 1433, "frlg": 1431, "hl": 1430,
    "ma": 1429, "dr": 1428, "ss": 1427, "rs": 1426,
    # e-Card, Neo, Gym, Original
    "sk": 647, "aq": 649, "ex": 646,
    "n4": 1395, "n3": 1397, "n2": 1434, "n1": 1396,
    "g2": 1440, "g1": 1441,
    "tr": 1373, "bs2": 605, "fo": 630, "ju": 635, "bs": 604, "bss": 1663,
    # Specials and promos
    "cl": 23323, "si": 648, "pr": 1418, "mcd23": 23306, "mcd24": 24163,
    "tot23": 23561, "tot24": 23266, "ba24": 23520, "mfb": 23330,
}


class ExpansionMap:
    """
    Bidirectional expansion id ↔ group id lookup.

    Usage:
        mapping = ExpansionMap()
        mapping.get_group_id("sv01")        # 23001
        mapping.get_expansion_id(23001)     # "sv01"
    """

    def __init__(self, mappings: dict[str, int] | None = None):
        source = KNOWN_GROUP_IDS if mappings is None else mappings
        self._forward: dict[str, int] = {}
        self._reverse: dict[int, str] = {}
        for expansion_id, group_id in source.items():
            self._forward[expansion_id] = group_id
            self._reverse[group_id] = expansion_id

    def __len__(self) -> int:
        return len(self._forward)

    def get_group_id(self, expansion_id: str) -> int | None:
        return self._forward.get(expansion_id)

    def get_expansion_id(self, group_id: int) -> str | None:
        return self._reverse.get(group_id)

    def has_mapping(self, expansion_id: str) -> bool:
        return expansion_id in self._forward

    def add_mapping(self, expansion_id: str, group_id: int) -> None:
        """Add or replace a mapping. Any previous pairing of either side is dropped."""
        old_group = self._forward.pop(expansion_id, None)
        if old_group is not None:
            self._reverse.pop(old_group, None)
        old_expansion = self._reverse.pop(group_id, None)
        if old_expansion is not None:
            self._forward.pop(old_expansion, None)

        self._forward[expansion_id] = group_id
        self._reverse[group_id] = expansion_id
        logger.info("expansion_mapping_added", expansion_id=expansion_id, group_id=group_id)

    def remove_mapping(self, expansion_id: str) -> bool:
        group_id = self._forward.pop(expansion_id, None)
        if group_id is None:
            return False
        self._reverse.pop(group_id, None)
        logger.info("expansion_mapping_removed", expansion_id=expansion_id, group_id=group_id)
        return True

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_mappings": len(self._forward),
            "expansion_ids": sorted(self._forward),
            "group_ids": sorted(self._reverse),
        }
