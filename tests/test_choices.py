"""
Tests for joining reconstructed steps to classified turns.
"""
import numpy as np
import pandas as pd
import pytest

from antroute.antroute_catalog import BranchCatalog
from antroute.antroute_choices import (
    ambiguous_choices, first_pair_members, join_turn_choices, regression_features, uturn_consistency,
)
from antroute.antroute_errors import JoinAmbiguityError
from antroute.antroute_trajectory import reconstruct_trajectories
from antroute.antroute_turns import classify_catalog


@pytest.fixture
def steps(observations):
    return reconstruct_trajectories(observations)


@pytest.fixture
def choices(steps, turn_table):
    return join_turn_choices(steps, turn_table)


class TestJoinTurnChoices:
    """Test cases for join_turn_choices."""

    def test_row_count(self, choices):
        """Test that tip visits and unmatched keys are dropped."""
        assert len(choices) == 7
        assert not choices["junction"].isin(["A", "B", "C", "D"]).any()

    def test_attributes_attached(self, choices):
        a1 = choices[choices["ant_id"] == "A1"]
        assert list(a1["role_from"]) == ["main", "main"]
        assert list(a1["role_to"]) == ["left", "left"]
        assert list(a1["turn_angle"]) == ["sharp", "shallow"]
        assert list(a1["handedness"]) == ["LH", "RH"]

    def test_uturn_step_matches_u_turn(self, choices):
        """Test that a reconstructed reversal joins to a U turn."""
        rev = choices[(choices["ant_id"] == "A2") & (choices["junction"] == "11")]
        assert len(rev) == 1
        assert rev.iloc[0]["turn_type"] == "U"
        assert rev.iloc[0]["uturn"] == 1
        assert np.isnan(rev.iloc[0]["sharp"])

    def test_override_step_joins(self, choices):
        """Test that the step re-entering after a U-turn joins from the right branch."""
        row = choices[(choices["ant_id"] == "A2") & (choices["path_length"] == 2)].iloc[0]
        assert (row["node_from"], row["junction"], row["node_to"]) == ("12", "1", "11")
        assert (row["role_from"], row["role_to"]) == ("right", "left")

    def test_responses(self, choices):
        non_u = choices[choices["turn_type"] != "U"]
        assert set(non_u["sharp"].unique()) <= {0.0, 1.0}
        assert (non_u["uturn"] == 0).all()

    def test_no_ambiguity_in_fixture(self, choices):
        assert not choices["ambiguous"].any()
        assert (choices["n_matches"] == 1).all()
        assert len(ambiguous_choices(choices)) == 0

    def test_unmatched_steps_logged(self, steps, turn_table, caplog):
        with caplog.at_level("WARNING", logger="antroute"):
            join_turn_choices(steps, turn_table)
        assert "match no turn" in caplog.text

    def test_invalid_policy(self, steps, turn_table):
        with pytest.raises(ValueError):
            join_turn_choices(steps, turn_table, on_ambiguous="first")


class TestAmbiguousJoin:
    """Test cases for keys matching more than one turn."""

    @pytest.fixture
    def shared_table(self):
        df = pd.DataFrame({
            "junction_id": ["9"] * 3,
            "role": ["main", "left", "right"],
            "width": [3.0, 1.0, 2.0],
            "destination_node": ["start", "X", "X"],
        })
        return classify_catalog(BranchCatalog.from_frame(df))

    @pytest.fixture
    def shared_steps(self):
        obs = pd.DataFrame([
            ("C1", "A1", 1.0, "9", None, "ignore"),
            ("C1", "A1", 2.0, "X", None, "ignore"),
        ], columns=["colony", "ant_id", "timestamp", "junction_visited", "exited_toward", "action"])
        return reconstruct_trajectories(obs)

    def test_flagged(self, shared_steps, shared_table):
        """Test that all candidate matches are kept and flagged."""
        choices = join_turn_choices(shared_steps, shared_table)
        assert len(choices) == 2
        assert choices["ambiguous"].all()
        assert set(choices["role_to"]) == {"left", "right"}
        assert choices["step_index"].nunique() == 1

    def test_raise(self, shared_steps, shared_table):
        with pytest.raises(JoinAmbiguityError):
            join_turn_choices(shared_steps, shared_table, on_ambiguous="raise")

    def test_regression_features_refuse_ambiguity(self, shared_steps, shared_table):
        choices = join_turn_choices(shared_steps, shared_table)
        with pytest.raises(JoinAmbiguityError):
            regression_features(choices)


class TestRegressionFeatures:
    """Test cases for the restricted feature table."""

    def test_filters(self, choices):
        """Test restriction to exploration phase and first pair member."""
        features = regression_features(choices)
        assert set(features["ant_id"]) == {"A1", "B1"}
        assert features["exploration_phase"].all()
        assert len(features) == 3

    def test_explicit_first_member(self, choices):
        features = regression_features(choices, first_member="2")
        assert set(features["ant_id"]) == {"A2"}

    def test_first_pair_members(self, steps):
        mask = first_pair_members(steps)
        assert set(steps.loc[mask, "ant_id"]) == {"A1", "B1"}

    def test_numeric_member_tags(self):
        """Test that digit tags compare as numbers, so 9 comes before 10."""
        steps = pd.DataFrame({
            "colony": ["C1", "C1", "C1"],
            "pair_id": ["A", "A", "A"],
            "pair_member": ["10", "9", "10"],
        })
        assert first_pair_members(steps).tolist() == [False, True, False]

    def test_lexical_member_tags(self):
        steps = pd.DataFrame({
            "colony": ["C1", "C1"],
            "pair_id": ["A", "A"],
            "pair_member": ["b", "a"],
        })
        assert first_pair_members(steps).tolist() == [False, True]


class TestUturnConsistency:
    def test_reversals_match_u(self, steps, turn_table):
        report = uturn_consistency(steps, turn_table)
        assert len(report) == 1
        assert report.iloc[0]["junction"] == "11"
        assert bool(report.iloc[0]["matches_uturn"])

    def test_reversal_through_shared_destination(self):
        """Test that a reversal over a shared destination also matches non-U turns."""
        df = pd.DataFrame({
            "junction_id": ["9"] * 3,
            "role": ["main", "left", "right"],
            "width": [3.0, 1.0, 2.0],
            "destination_node": ["start", "X", "X"],
        })
        table = classify_catalog(BranchCatalog.from_frame(df))
        steps = pd.DataFrame([{
            "colony": "C1", "ant_id": "A1", "path_length": 2,
            "node_from": "X", "junction": "9", "node_to": "X",
        }])
        report = uturn_consistency(steps, table)
        assert report.iloc[0]["n_matches"] == 4
        assert bool(report.iloc[0]["matches_uturn"])
