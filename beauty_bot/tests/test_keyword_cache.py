from __future__ import annotations

from conftest import FakeIndex, make_record

from beauty_bot.keyword_cache import KeywordMappingCache, KeywordMappings, build_mappings
from beauty_bot.models import IndexHit


def _hits(records):
    return [IndexHit(r.id, 0.5, r) for r in records]


def test_build_mappings(catalog):
    mappings = build_mappings(_hits(catalog))

    assert set(mappings.type_to_keywords) == {"lipstick", "cleanser", "moisturizer", "treatment"}
    assert mappings.default_combo_types == ("lipstick", "cleanser", "moisturizer")
    assert mappings.keywords_for("Cleanser") == "cleanser gentle face wash gentle foam cleanser"
    assert "vegan" in mappings.synonyms_for("lipstick")
    assert "velvet" in mappings.synonyms_for("lipstick")
    # words of three letters or fewer are not synonyms
    assert "red" not in mappings.synonyms_for("lipstick")
    assert mappings.built_at is not None


def test_build_mappings_skips_untyped_records():
    mappings = build_mappings(_hits([make_record("x", "Mystery Item", product_type=None)]))
    assert mappings.is_empty
    assert mappings.default_combo_types == ()


def test_rebuild_installs_snapshot(index):
    cache = KeywordMappingCache(scan_size=50)
    assert cache.snapshot().is_empty

    assert cache.rebuild(index) is True
    assert index.calls == [("all products", 50)]
    assert cache.snapshot().keywords_for("lipstick")
    assert cache.status()["types"] == 4


def test_failed_rebuild_keeps_previous_snapshot(catalog):
    previous = KeywordMappings(type_to_keywords={"toner": "toner"})
    cache = KeywordMappingCache(mappings=previous)

    assert cache.rebuild(FakeIndex(catalog, fail=True)) is False
    assert cache.snapshot() is previous
    assert cache.status()["last_error"] == "index unavailable"

    assert cache.rebuild(FakeIndex([])) is False
    assert cache.snapshot() is previous


def test_rebuild_without_index():
    cache = KeywordMappingCache()
    assert cache.rebuild(None) is False
    assert cache.snapshot().is_empty


def test_background_build(index):
    cache = KeywordMappingCache()
    thread = cache.start_background_build(index)
    thread.join(timeout=5)
    assert not cache.snapshot().is_empty
    assert cache.building is False
