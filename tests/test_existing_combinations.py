"""
Tests for the existing-combination index, deduplication and base selection.
"""

import logging
from unittest.mock import Mock

import pytest

from submodule_combinator.existing_combinations import (
    ExistingCombinationIndex, difference, matches,
)
from submodule_combinator.models import (
    Combination, ExistingConfiguration, GitRepositoryError, Revision, SubmoduleEntry,
)


def _combo(**shas: str) -> Combination:
    return Combination({SubmoduleEntry(path=p, object="root"): Revision(s) for p, s in shas.items()})


def _entries(**shas: str):
    return [SubmoduleEntry(path=p, object=s) for p, s in shas.items()]


class TestDifference:
    """Test the difference metric."""

    def test_identical(self):
        assert difference(_combo(A="a1", B="b1"), _entries(A="a1", B="b1")) == 0
        assert matches(_combo(A="a1", B="b1"), _entries(A="a1", B="b1"))

    def test_counts_out_of_date_submodules(self):
        assert difference(_combo(A="a1", B="b1"), _entries(A="a2", B="b1")) == 1
        assert difference(_combo(A="a1", B="b1"), _entries(A="a2", B="b2")) == 2

    def test_cardinality_mismatch_is_incomparable(self):
        assert difference(_combo(A="a1", B="b1"), _entries(A="a1")) == -1
        assert difference(_combo(A="a1"), _entries(A="a1", B="b1")) == -1
        assert difference(_combo(A="a1"), []) == -1

    def test_missing_path_is_incomparable(self):
        assert difference(_combo(A="a1", B="b1"), _entries(A="a1", C="b1")) == -1
        assert not matches(_combo(A="a1", B="b1"), _entries(A="a1", C="b1"))

    def test_symmetric_when_paths_match(self):
        left = (dict(A="a1", B="b1"), dict(A="a2", B="b1"))
        forward = difference(_combo(**left[0]), _entries(**left[1]))
        backward = difference(_combo(**left[1]), _entries(**left[0]))
        assert forward == backward == 1


class TestIndexBuild:
    """Test building the index from the git collaborator."""

    def test_build_scans_every_commit_in_order(self):
        gm = Mock()
        gm.list_all_commits.return_value = ["c3", "c2", "c1"]
        gm.list_submodules.side_effect = lambda sha: _entries(A=f"{sha}-a")

        index = ExistingCombinationIndex.build(gm)

        assert len(index) == 3
        assert [c.commit for c in index.configurations] == ["c3", "c2", "c1"]
        by_commit = {c.commit: c.entries for c in index.configurations}
        assert by_commit["c2"][0].object == "c2-a"
        assert "nope" not in index
        assert "c1" in index

    def test_build_propagates_errors(self):
        gm = Mock()
        gm.list_all_commits.return_value = ["c1"]
        gm.list_submodules.side_effect = GitRepositoryError("not a tree")

        with pytest.raises(GitRepositoryError):
            ExistingCombinationIndex.build(gm)


class TestRemoveExisting:
    """Test deduplication against history."""

    def test_removes_exact_matches_only(self):
        index = ExistingCombinationIndex([
            ExistingConfiguration("c1", _entries(A="a1", B="b1")),
            ExistingConfiguration("c2", _entries(A="a9")),
        ])
        candidates = [_combo(A="a1", B="b1"), _combo(A="a2", B="b1"), _combo(A="a1", B="b2")]

        survivors = index.remove_existing(candidates)

        assert survivors == [_combo(A="a2", B="b1"), _combo(A="a1", B="b2")]
        assert len(candidates) == 3

    def test_survivor_count_is_generated_minus_matches(self):
        index = ExistingCombinationIndex([
            ExistingConfiguration("c1", _entries(A="a1", B="b1")),
            ExistingConfiguration("c2", _entries(A="a2", B="b2")),
            ExistingConfiguration("c3", _entries(A="a1", B="b1")),
        ])
        candidates = [_combo(A=a, B=b) for a in ("a1", "a2") for b in ("b1", "b2")]

        assert len(index.remove_existing(candidates)) == 4 - 2

    def test_logs_the_commit_already_recording_a_candidate(self, caplog):
        index = ExistingCombinationIndex([
            ExistingConfiguration("0123456789abcdef", _entries(A="a1", B="b1")),
        ])

        with caplog.at_level(logging.DEBUG, logger="submodule_combinator.existing_combinations"):
            index.remove_existing([_combo(A="a1", B="b1")])

        assert "already exists at 01234567" in caplog.text

    def test_empty_index_keeps_everything(self):
        candidates = [_combo(A="a1")]
        assert ExistingCombinationIndex().remove_existing(candidates) == candidates

    def test_find_matching_commit(self):
        index = ExistingCombinationIndex([
            ExistingConfiguration("c1", _entries(A="a0")),
            ExistingConfiguration("c2", _entries(A="a1")),
        ])
        assert index.find_matching_commit(_combo(A="a1")) == "c2"
        assert index.find_matching_commit(_combo(A="a5")) is None


class TestSelectBase:
    """Test nearest-base-commit selection."""

    def test_picks_smallest_positive_difference(self):
        index = ExistingCombinationIndex([
            ExistingConfiguration("far", _entries(A="x", B="y", C="z")),
            ExistingConfiguration("near", _entries(A="a1", B="y", C="z")),
            ExistingConfiguration("other", _entries(A="a1")),
        ])
        assert index.select_base(_combo(A="a1", B="b1", C="c1"), "root") == ("near", 2)

    def test_difference_of_one_stops_the_scan(self):
        gm_entries = [
            ExistingConfiguration("first", _entries(A="a1", B="x")),
            ExistingConfiguration("second", _entries(A="a1", B="y")),
        ]
        index = ExistingCombinationIndex(gm_entries)
        assert index.select_base(_combo(A="a1", B="b1"), "root") == ("first", 1)

    def test_ties_keep_first_scanned(self):
        index = ExistingCombinationIndex([
            ExistingConfiguration("one", _entries(A="x", B="y")),
            ExistingConfiguration("two", _entries(A="p", B="q")),
        ])
        assert index.select_base(_combo(A="a1", B="b1"), "root") == ("one", 2)

    def test_falls_back_to_root_when_nothing_comparable(self):
        index = ExistingCombinationIndex([
            ExistingConfiguration("c1", _entries(A="a1")),
            ExistingConfiguration("c2", []),
        ])
        assert index.select_base(_combo(A="a1", B="b1"), "root") == ("root", None)

    def test_exact_match_is_not_a_base(self):
        index = ExistingCombinationIndex([ExistingConfiguration("same", _entries(A="a1"))])
        assert index.select_base(_combo(A="a1"), "root") == ("root", None)
