"""Tests for MemoryStore and its JSON repository."""

import json
from pathlib import Path

import pytest

from samchat.memory import (
    FactCategory,
    JsonMemoryRepository,
    MemoryConfig,
    MemoryDocument,
    MemoryFact,
    MemoryStore,
    format_for_prompt,
)


@pytest.fixture
def repository(tmp_path: Path) -> JsonMemoryRepository:
    return JsonMemoryRepository(tmp_path / "memory")


@pytest.fixture
def store(repository: JsonMemoryRepository) -> MemoryStore:
    return MemoryStore(repository=repository)


class TestAddFact:
    def test_adds_fact(self, store: MemoryStore):
        assert store.add_fact("alice", MemoryFact("likes tea")) is True
        assert [f.text for f in store.facts("alice")] == ["likes tea"]

    def test_dedup_is_case_insensitive(self, store: MemoryStore):
        store.add_fact("alice", MemoryFact("Likes Tea"))
        assert store.add_fact("alice", MemoryFact("likes tea")) is False
        assert len(store.facts("alice")) == 1

    def test_dedup_ignores_category(self, store: MemoryStore):
        store.add_fact("alice", MemoryFact("Paris", FactCategory.LOCATION))
        assert store.add_fact("alice", MemoryFact("paris", FactCategory.EXPLICIT)) is False

    def test_empty_text_rejected(self, store: MemoryStore):
        assert store.add_fact("alice", MemoryFact("   ")) is False
        assert store.facts("alice") == []

    def test_users_are_separate(self, store: MemoryStore):
        store.add_fact("alice", MemoryFact("likes tea"))
        assert store.facts("bob") == []

    def test_extracting_twice_stores_once(self, store: MemoryStore):
        for _ in range(2):
            for fact in store.extract("My name is Alice"):
                store.add_fact("alice", fact)
        facts = store.facts("alice")
        assert len(facts) == 1
        assert facts[0].category is FactCategory.NAME

    def test_cap_evicts_oldest_first(self, store: MemoryStore):
        for i in range(25):
            store.add_fact("alice", MemoryFact(f"fact number {i}"))

        texts = [f.text for f in store.facts("alice")]
        assert len(texts) == 20
        assert texts == [f"fact number {i}" for i in range(5, 25)]

    def test_custom_cap(self, repository: JsonMemoryRepository):
        store = MemoryStore(repository=repository, max_facts=2)
        store.add_facts("alice", [MemoryFact("a one"), MemoryFact("b two"), MemoryFact("c three")])
        assert [f.text for f in store.facts("alice")] == ["b two", "c three"]

    def test_invalid_cap(self):
        with pytest.raises(ValueError):
            MemoryStore(max_facts=0)

    def test_add_facts_counts_new_only(self, store: MemoryStore):
        store.add_fact("alice", MemoryFact("one fact"))
        added = store.add_facts("alice", [MemoryFact("one fact"), MemoryFact("two fact")])
        assert added == 1


class TestEditing:
    def test_remember(self, store: MemoryStore):
        fact = store.remember("alice", "  my locker is 42 ")
        assert fact is not None
        assert fact.category is FactCategory.EXPLICIT
        assert fact.text == "my locker is 42"
        assert store.remember("alice", "MY LOCKER IS 42") is None

    def test_remove_fact(self, store: MemoryStore):
        store.add_facts("alice", [MemoryFact("first"), MemoryFact("second")])
        assert store.remove_fact("alice", 0) is True
        assert [f.text for f in store.facts("alice")] == ["second"]

    def test_remove_out_of_range_is_noop(self, store: MemoryStore):
        store.add_fact("alice", MemoryFact("first"))
        assert store.remove_fact("alice", 5) is False
        assert store.remove_fact("alice", -1) is False
        assert len(store.facts("alice")) == 1

    def test_update_fact_keeps_category(self, store: MemoryStore):
        store.add_fact("alice", MemoryFact("Paris", FactCategory.LOCATION))
        assert store.update_fact("alice", 0, "Lyon") is True
        fact = store.facts("alice")[0]
        assert fact.text == "Lyon"
        assert fact.category is FactCategory.LOCATION

    def test_update_fact_rejects_duplicate(self, store: MemoryStore):
        store.add_facts("alice", [MemoryFact("first"), MemoryFact("second")])
        assert store.update_fact("alice", 1, "FIRST") is False
        assert store.update_fact("alice", 1, "") is False
        assert store.update_fact("alice", 9, "new") is False

    def test_clear_all(self, store: MemoryStore):
        store.add_facts("alice", [MemoryFact("first"), MemoryFact("second")])
        store.update_preferences("alice", {"tone": "casual"})
        store.clear_all("alice")
        assert store.facts("alice") == []
        assert store.preferences("alice") == {"tone": "casual"}

    def test_update_preferences_merges(self, store: MemoryStore):
        store.update_preferences("alice", {"tone": "casual"})
        store.update_preferences("alice", {"emoji": False})
        assert store.preferences("alice") == {"tone": "casual", "emoji": False}


class TestPersistence:
    def test_writes_document_shape(self, store: MemoryStore, repository: JsonMemoryRepository):
        store.add_fact("alice", MemoryFact("Alice", FactCategory.NAME))
        data = json.loads((repository.directory / "alice.json").read_text())
        assert data["facts"] == ["NAME: Alice"]
        assert data["personality_preferences"] == {}
        assert "last_updated" in data

    def test_reload_from_disk(self, repository: JsonMemoryRepository):
        MemoryStore(repository=repository).add_facts(
            "alice",
            [MemoryFact("Alice", FactCategory.NAME), MemoryFact("walk the dog")],
        )
        facts = MemoryStore(repository=repository).facts("alice")
        assert [(f.category, f.text) for f in facts] == [
            (FactCategory.NAME, "Alice"),
            (FactCategory.EXPLICIT, "walk the dog"),
        ]

    def test_unload_then_load(self, store: MemoryStore):
        store.add_fact("alice", MemoryFact("likes tea"))
        store.unload("alice")
        assert [f.text for f in store.facts("alice")] == ["likes tea"]

    def test_corrupt_file_loads_empty(self, repository: JsonMemoryRepository):
        (repository.directory / "alice.json").write_text("{not json")
        assert MemoryStore(repository=repository).facts("alice") == []

    def test_junk_entries_skipped(self):
        document = MemoryDocument.from_dict({"facts": ["NAME: Al", 3, "", None], "personality_preferences": []})
        assert [f.encode() for f in document.facts] == ["NAME: Al"]
        assert document.personality_preferences == {}

    def test_user_id_is_sanitized(self, repository: JsonMemoryRepository):
        store = MemoryStore(repository=repository)
        store.add_fact("../evil/user", MemoryFact("sneaky"))
        assert not (repository.directory.parent / "evil").exists()
        assert len(list(repository.directory.glob("*.json"))) == 1

    def test_delete(self, store: MemoryStore, repository: JsonMemoryRepository):
        store.add_fact("alice", MemoryFact("likes tea"))
        repository.delete("alice")
        assert repository.load("alice") is None

    def test_from_config(self, tmp_path: Path):
        store = MemoryStore.from_config(MemoryConfig(directory=tmp_path / "mem", max_facts=3))
        assert store.max_facts == 3
        store.add_fact("alice", MemoryFact("likes tea"))
        assert (tmp_path / "mem" / "alice.json").exists()

    def test_in_memory_store(self):
        store = MemoryStore()
        store.add_fact("alice", MemoryFact("likes tea"))
        assert len(store.facts("alice")) == 1


class TestFormatForPrompt:
    def test_empty(self):
        assert format_for_prompt([]) == ""

    def test_sections_in_order(self):
        block = format_for_prompt([
            MemoryFact("Berlin", FactCategory.LOCATION),
            MemoryFact("call mom on sunday", FactCategory.EXPLICIT),
            MemoryFact("NAME: Alice", FactCategory.NAME),
        ])
        assert block.startswith("Things you remember about this user:")
        name_at = block.index("USER'S NAME: Alice (use this name when talking to them)")
        explicit_at = block.index("EXPLICIT MEMORIES")
        auto_at = block.index("AUTO-DETECTED INFO:")
        assert name_at < explicit_at < auto_at
        assert "- call mom on sunday" in block
        assert "- Berlin" in block

    def test_name_not_repeated_in_auto_section(self):
        block = format_for_prompt([MemoryFact("Alice", FactCategory.NAME)])
        assert "AUTO-DETECTED INFO" not in block
        assert block.count("Alice") == 1

    def test_context_uses_stored_facts(self, store: MemoryStore):
        store.add_fact("alice", MemoryFact("likes tea", FactCategory.INTEREST))
        assert "- likes tea" in store.context("alice")
        assert store.context("bob") == ""
