from chat_ledger.core.categorizer import CategoryResolver, word_pattern
from chat_ledger.core.errors import ClassifierUnavailable
from chat_ledger.core.models import DEFAULT_CATEGORIES, NOT_FOUND, UNCATEGORIZED

from conftest import FakeClassifier


def _seed(mapping_store):
    mapping_store.append({"description": "Kopi", "category": "Food and Drink", "tag": "Snack"})
    mapping_store.append({"description": "Bensin", "category": "Transportation", "tag": ""})


def test_exact_match_wins(mapping_store, resolver):
    _seed(mapping_store)
    result = resolver.resolve("Bensin")
    assert (result.category, result.source) == ("Transportation", "exact")


def test_word_overlap_is_case_insensitive(mapping_store, resolver):
    _seed(mapping_store)
    result = resolver.resolve("es kopi susu")
    assert result.category == "Food and Drink"
    assert result.tag == "Snack"
    assert result.source == "fuzzy"


def test_no_classifier_means_uncategorized(resolver):
    result = resolver.resolve("Something new")
    assert result.category == UNCATEGORIZED
    assert result.source == "none"


def test_classifier_fallback(mapping_store, clock):
    classifier = FakeClassifier(category={"category": "Donation", "tag": ""})
    resolver = CategoryResolver(mapping_store, classifier, DEFAULT_CATEGORIES, clock)
    result = resolver.resolve("Nasi for a neighbour")
    assert result.category == "Donation"
    assert result.source == "classifier"
    assert classifier.calls == [("categorize", "Nasi for a neighbour")]


def test_classifier_outside_closed_set_is_not_found(mapping_store, clock):
    classifier = FakeClassifier(category={"category": "Groceries", "tag": "x"})
    resolver = CategoryResolver(mapping_store, classifier, DEFAULT_CATEGORIES, clock)
    assert resolver.resolve("Veggies").category == NOT_FOUND


def test_classifier_failure_is_not_found(mapping_store, clock):
    classifier = FakeClassifier(error=ClassifierUnavailable("timeout"))
    resolver = CategoryResolver(mapping_store, classifier, DEFAULT_CATEGORIES, clock)
    assert resolver.resolve("Veggies").category == NOT_FOUND


def test_resolve_local_never_calls_classifier(mapping_store, clock):
    classifier = FakeClassifier()
    resolver = CategoryResolver(mapping_store, classifier, DEFAULT_CATEGORIES, clock)
    assert resolver.resolve_local("Unknown thing").category == UNCATEGORIZED
    assert classifier.calls == []


def test_resolution_is_not_persisted(mapping_store, clock):
    classifier = FakeClassifier()
    resolver = CategoryResolver(mapping_store, classifier, DEFAULT_CATEGORIES, clock)
    resolver.resolve("Roti")
    assert mapping_store.row_count() == 0


def test_save_mapping_upserts(mapping_store, resolver):
    assert resolver.save_mapping("Kopi", "Food and Drink", "Snack") is False
    assert resolver.save_mapping("Kopi", "Lifestyle") is True
    mappings = resolver.list_mappings()
    assert len(mappings) == 1
    assert mappings[0].category == "Lifestyle"
    assert mappings[0].tag == ""
    assert mappings[0].date_added == "2025-01-17 10:00:00"


def test_delete_mapping(mapping_store, resolver):
    resolver.save_mapping("Kopi", "Food and Drink")
    assert resolver.delete_mapping("Kopi") is True
    assert resolver.delete_mapping("Kopi") is False
    assert resolver.list_mappings() == []


def test_word_pattern_escapes():
    pattern = word_pattern("a+b (c)")
    assert pattern.search("A+B")
    assert word_pattern("   ") is None
