"""
Tests for the expansion ↔ group id table (tcgvault/utils/expansion_map.py).
"""

from __future__ import annotations

from tcgvault.utils.expansion_map import KNOWN_GROUP_IDS, ExpansionMap


def test_known_mappings_are_bidirectional() -> None:
    mapping = ExpansionMap()

    assert len(mapping) == len(KNOWN_GROUP_IDS)
    assert mapping.get_group_id("sv01") == 23001
    assert mapping.get_expansion_id(23001) == "sv01"
    assert mapping.get_group_id("unknown") is None
    assert mapping.get_expansion_id(-1) is None


def test_known_group_ids_are_unique() -> None:
    assert len(set(KNOWN_GROUP_IDS.values())) == len(KNOWN_GROUP_IDS)


def test_add_mapping_replaces_both_sides() -> None:
    mapping = ExpansionMap({"sv1": 100, "sv2": 200})

    mapping.add_mapping("sv1", 200)

    assert mapping.get_group_id("sv1") == 200
    assert mapping.get_expansion_id(200) == "sv1"
    assert mapping.get_expansion_id(100) is None
    assert not mapping.has_mapping("sv2")
    assert len(mapping) == 1


def test_remove_mapping() -> None:
    mapping = ExpansionMap({"sv1": 100})

    assert mapping.remove_mapping("sv1") is True
    assert mapping.remove_mapping("sv1") is False
    assert mapping.get_expansion_id(100) is None
    assert mapping.get_stats() == {"total_mappings": 0, "expansion_ids": [], "group_ids": []}
