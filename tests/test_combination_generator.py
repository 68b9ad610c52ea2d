"""
Tests for cartesian-product combination generation.
"""

from submodule_combinator.combination_generator import count_combinations, create_combinations
from submodule_combinator.models import Combination, Revision, SubmoduleEntry


def _entry(path: str) -> SubmoduleEntry:
    return SubmoduleEntry(path=path, object=f"{path}-recorded")


def _revs(*shas: str):
    return [Revision(sha, ("main",)) for sha in shas]


def test_no_submodules_yields_no_combinations():
    assert create_combinations({}) == []
    assert count_combinations({}) == 0


def test_single_submodule():
    result = create_combinations({_entry("A"): _revs("a1", "a2")})

    assert len(result) == 2
    assert [c.revision_for("A").sha1 for c in result] == ["a1", "a2"]


def test_product_size_and_totality():
    module_branches = {
        _entry("A"): _revs("a1", "a2"),
        _entry("B"): _revs("b1", "b2", "b3"),
        _entry("C"): _revs("c1"),
    }
    result = create_combinations(module_branches)

    assert len(result) == 2 * 3 * 1 == count_combinations(module_branches)
    for combination in result:
        assert sorted(combination.paths) == ["A", "B", "C"]
    # Every assignment is distinct
    assert len(set(result)) == len(result)


def test_first_submodule_varies_slowest():
    result = create_combinations({
        _entry("A"): _revs("a1", "a2"),
        _entry("B"): _revs("b1", "b2"),
    })
    pairs = [(c.revision_for("A").sha1, c.revision_for("B").sha1) for c in result]
    assert pairs == [("a1", "b1"), ("a1", "b2"), ("a2", "b1"), ("a2", "b2")]


def test_empty_factor_empties_the_product():
    result = create_combinations({
        _entry("A"): _revs("a1", "a2"),
        _entry("B"): [],
    })
    assert result == []


def test_empty_first_factor_empties_the_product():
    result = create_combinations({
        _entry("A"): [],
        _entry("B"): _revs("b1"),
    })
    assert result == []


def test_input_is_not_consumed():
    module_branches = {_entry("A"): _revs("a1"), _entry("B"): _revs("b1", "b2")}
    create_combinations(module_branches)

    assert len(module_branches) == 2
    assert len(module_branches[_entry("B")]) == 2
    # Reusable: a second call gives the same answer
    assert len(create_combinations(module_branches)) == 2


def test_keys_are_root_entries():
    a = _entry("A")
    result = create_combinations({a: _revs("a1")})
    assert result == [Combination({a: Revision("a1")})]
    assert result[0].entries[0].object == "A-recorded"
