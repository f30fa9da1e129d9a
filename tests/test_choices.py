# tests/test_choices.py
import random

from vocab_core.choices import generate_choices
from vocab_core.schemas import VocabularyItem


def test_choices_contain_correct_and_distinct_distractors(catalog, rng):
    correct = catalog[0]
    options = generate_choices(correct, catalog, n=3, rng=rng)
    assert len(options) == 4
    assert len(set(options)) == 4
    assert correct.gloss in options


def test_choices_are_deterministic_with_seeded_rng(catalog):
    first = generate_choices(catalog[4], catalog, rng=random.Random(7))
    second = generate_choices(catalog[4], catalog, rng=random.Random(7))
    assert first == second


def test_small_pool_degrades_gracefully(catalog, rng):
    """Fewer candidates than wanted yields fewer options, not an error."""
    correct = catalog[0]
    options = generate_choices(correct, catalog[:3], n=3, rng=rng)
    assert sorted(options) == sorted(item.gloss for item in catalog[:3])

    assert generate_choices(correct, [correct], rng=rng) == [correct.gloss]
    assert generate_choices(correct, [], rng=rng) == [correct.gloss]


def test_same_gloss_is_not_a_distractor(rng):
    correct = VocabularyItem(id="a", headword="huis", gloss="house")
    pool = [
        correct,
        VocabularyItem(id="b", headword="woning", gloss="house"),
        VocabularyItem(id="c", headword="boom", gloss="tree"),
        VocabularyItem(id="d", headword="bos", gloss="tree"),
    ]
    options = generate_choices(correct, pool, n=3, rng=rng)
    assert sorted(options) == ["house", "tree"]
