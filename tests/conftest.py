"""
Shared pytest fixtures for antroute tests.

The fixture network is a root junction '1' fed from 'start', with two child
junctions '11' and '12' leading to tips A, B (from 11) and C, D (from 12).
Junction '12' has its two offshoots tied at the minimum width and needs a
handedness override.
"""
import os
import tempfile

import pandas as pd
import pytest

from antroute.antroute_catalog import BranchCatalog
from antroute.antroute_config import HandednessOverrides
from antroute.antroute_prediction import FittedModel
from antroute.antroute_tips import TipReference
from antroute.antroute_turns import classify_catalog


@pytest.fixture
def branch_table():
    """Branch catalog for the three-junction fixture network."""
    return pd.DataFrame({
        "junction_id": ["1", "1", "1", "11", "11", "11", "12", "12", "12"],
        "role": ["main", "left", "right"] * 3,
        "width": [3.0, 1.0, 2.0,
                  3.0, 2.0, 1.0,
                  2.0, 1.0, 1.0],
        "destination_node": ["start", "11", "12",
                             "1", "A", "B",
                             "1", "C", "D"],
    })


@pytest.fixture
def overrides():
    return HandednessOverrides({"12": "RH"})


@pytest.fixture
def catalog(branch_table):
    return BranchCatalog.from_frame(branch_table)


@pytest.fixture
def turn_table(catalog, overrides):
    return classify_catalog(catalog, overrides)


@pytest.fixture
def observations():
    """
    Observation log for colony C1.

    A1: 1 -> 11 -> A (inspects at A)
    A2: leaves 1 toward 12, turns back, re-enters 1, then 11 and back to 1
    B1: inspects at 1, then 12 -> C
    """
    return pd.DataFrame([
        ("C1", "A1", 1.0, "1", None, "ignore"),
        ("C1", "A1", 2.0, "11", None, "ignore"),
        ("C1", "A1", 3.0, "A", None, "inspect"),
        ("C1", "A2", 1.0, "1", "12", "ignore"),
        ("C1", "A2", 2.0, "1", None, "ignore"),
        ("C1", "A2", 3.0, "11", None, "ignore"),
        ("C1", "A2", 4.0, "1", None, "ignore"),
        ("C1", "B1", 1.0, "1", None, "inspect"),
        ("C1", "B1", 2.0, "12", None, "ignore"),
        ("C1", "B1", 3.0, "C", None, "ignore"),
    ], columns=["colony", "ant_id", "timestamp", "junction_visited", "exited_toward", "action"])


@pytest.fixture
def tip_table():
    return pd.DataFrame({
        "tip_id": ["A", "B", "C", "D"],
        "type": ["food", "empty", "nest", "empty"],
        "location": ["left_outer", "left_inner", "right_inner", "right_outer"],
        "distance_from_trunk": [2.0, 1.0, 1.0, 2.0],
    })


@pytest.fixture
def tips(tip_table):
    return TipReference.from_frame(tip_table)


def _constant_model(name, p):
    keys = [(a, s) for a in ("main", "sharp", "shallow") for s in (True, False)]
    return FittedModel(name, {k: p for k in keys})


@pytest.fixture
def p_uturn_model():
    return _constant_model("p_uturn", 0.2)


@pytest.fixture
def p_sharp_model():
    return _constant_model("p_sharp_given_not_u", 0.3)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def input_files(temp_dir, branch_table, observations, tip_table):
    """Write the fixture tables to CSV and return their paths."""
    paths = {
        "catalog": os.path.join(temp_dir, "branches.csv"),
        "observations": os.path.join(temp_dir, "observations.csv"),
        "tips": os.path.join(temp_dir, "tips.csv"),
        "p_uturn": os.path.join(temp_dir, "p_uturn.csv"),
        "p_sharp": os.path.join(temp_dir, "p_sharp.csv"),
    }
    branch_table.to_csv(paths["catalog"], index=False)
    observations.to_csv(paths["observations"], index=False)
    tip_table.to_csv(paths["tips"], index=False)
    keys = [(a, s) for a in ("main", "sharp", "shallow") for s in (True, False)]
    pd.DataFrame([(a, s, 0.2) for a, s in keys],
                 columns=["angle_from", "sharp_is_left", "p_uturn"]).to_csv(paths["p_uturn"], index=False)
    pd.DataFrame([(a, s, 0.3) for a, s in keys],
                 columns=["angle_from", "sharp_is_left", "p_sharp_given_not_u"]).to_csv(paths["p_sharp"], index=False)
    return paths
