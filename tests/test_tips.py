"""
Tests for the tip reference and tip-arrival annotation.
"""
import pandas as pd
import pytest

from antroute.antroute_errors import SchemaError
from antroute.antroute_tips import TipReference, annotate_tip_arrivals, first_tip_arrivals
from antroute.antroute_trajectory import reconstruct_trajectories


class TestTipReference:
    def test_from_frame(self, tips):
        assert len(tips) == 4
        assert "A" in tips
        assert "1" not in tips
        assert tips.get("C").type == "nest"
        assert tips.get("Z") is None

    def test_duplicate_tip(self, tip_table):
        with pytest.raises(SchemaError, match="Duplicate"):
            TipReference.from_frame(pd.concat([tip_table, tip_table.iloc[[0]]]))

    def test_missing_column(self, tip_table):
        with pytest.raises(SchemaError):
            TipReference.from_frame(tip_table.drop(columns=["location"]))

    def test_missing_distance(self, tip_table):
        df = tip_table.astype({"distance_from_trunk": object})
        df.loc[0, "distance_from_trunk"] = None
        assert TipReference.from_frame(df).get("A").distance_from_trunk is None


class TestTipArrivals:
    def test_annotate(self, observations, tips):
        steps = reconstruct_trajectories(observations)
        annotated = annotate_tip_arrivals(steps, tips)
        assert len(annotated) == len(steps)
        tip_rows = annotated[annotated["is_tip"]]
        assert set(tip_rows["junction"]) == {"A", "C"}
        assert annotated.loc[~annotated["is_tip"], "tip_type"].isna().all()

    def test_first_arrivals(self, observations, tips):
        steps = reconstruct_trajectories(observations)
        first = first_tip_arrivals(steps, tips)
        assert list(first["ant_id"]) == ["A1", "B1"]
        a1 = first.iloc[0]
        assert (a1["tip_id"], a1["tip_type"], a1["path_length"]) == ("A", "food", 3)
        assert bool(a1["exploration_phase"])
        b1 = first.iloc[1]
        assert (b1["tip_id"], b1["tip_type"]) == ("C", "nest")
        assert not bool(b1["exploration_phase"])

    def test_first_arrivals_from_annotated_steps(self, observations, tips):
        """Test that first arrivals work on a table that is already annotated."""
        steps = reconstruct_trajectories(observations)
        annotated = annotate_tip_arrivals(steps, tips)
        pd.testing.assert_frame_equal(first_tip_arrivals(annotated, tips), first_tip_arrivals(steps, tips))

    def test_annotate_twice(self, observations, tips):
        steps = reconstruct_trajectories(observations)
        once = annotate_tip_arrivals(steps, tips)
        twice = annotate_tip_arrivals(once, tips)
        assert list(twice.columns) == list(once.columns)
        assert twice["is_tip"].sum() == 2
