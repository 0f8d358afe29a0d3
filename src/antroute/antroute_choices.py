# ------------------------------
# Turn-Choice Joiner
# ------------------------------

from typing import Optional

import numpy as np
import pandas as pd

from antroute.antroute_errors import JoinAmbiguityError
from antroute.antroute_logging import get_logger
from antroute.antroute_turns import TurnTable

logger = get_logger()

JOIN_KEYS = ["junction", "node_from", "node_to"]


def _turns_for_join(turn_table: TurnTable) -> pd.DataFrame:
    turns = turn_table.to_frame().rename(columns={"junction_id": "junction"})
    counts = turns.groupby(JOIN_KEYS).size().rename("n_matches").reset_index()
    return turns.merge(counts, on=JOIN_KEYS, how="left")


def join_turn_choices(steps: pd.DataFrame, turn_table: TurnTable, on_ambiguous: str = "flag") -> pd.DataFrame:
    """
    Attach classified turn attributes to each reconstructed traversal.

    Matching is exact on (junction, node_from, node_to). Steps at nodes that
    are not catalog junctions (tips) are dropped. Steps at a junction with no
    matching turn are dropped with a warning. A key matching several turns
    keeps one row per candidate, flagged ``ambiguous``; with
    ``on_ambiguous="raise"`` it raises JoinAmbiguityError instead.

    Returns:
        The step columns plus turn attributes, ``n_matches``, ``ambiguous``
        and the binary responses ``uturn`` and ``sharp`` (NaN for U-turns).
    """
    if on_ambiguous not in ("flag", "raise"):
        raise ValueError("on_ambiguous must be 'flag' or 'raise'")

    df = steps.reset_index(drop=True).copy()
    df["step_index"] = np.arange(len(df))
    for col in JOIN_KEYS:
        df[col] = df[col].astype(str)

    known = set(turn_table.junction_ids())
    at_junction = df[df["junction"].isin(known)]
    n_tips = len(df) - len(at_junction)
    if n_tips:
        logger.debug(f"Dropped {n_tips} steps at non-junction nodes")

    merged = at_junction.merge(_turns_for_join(turn_table), on=JOIN_KEYS, how="left", indicator=True)
    unmatched = merged[merged["_merge"] == "left_only"]
    if len(unmatched):
        keys = sorted(set(map(tuple, unmatched[JOIN_KEYS].to_numpy())))
        logger.warning(f"{len(unmatched)} steps match no turn and were dropped, e.g. {keys[:3]}")
    merged = merged[merged["_merge"] == "both"].drop(columns="_merge")

    merged["n_matches"] = merged["n_matches"].astype(int)
    merged["ambiguous"] = merged["n_matches"] > 1
    if merged["ambiguous"].any():
        keys = sorted(set(map(tuple, merged.loc[merged["ambiguous"], JOIN_KEYS].to_numpy())))
        if on_ambiguous == "raise":
            raise JoinAmbiguityError(f"{len(keys)} trajectory keys match more than one turn: {keys[:5]}")
        logger.warning(f"{len(keys)} trajectory keys match more than one turn; rows flagged for review")

    merged["uturn"] = (merged["turn_type"] == "U").astype(int)
    merged["sharp"] = np.where(merged["uturn"] == 1, np.nan, (merged["turn_angle"] == "sharp").astype(float))
    return merged.sort_values(["step_index", "role_from", "role_to"], kind="mergesort").reset_index(drop=True)


def _lowest_tag(tags: pd.Series) -> str:
    tags = tags.astype(str)
    if tags.str.isdigit().all():
        return tags.iloc[int(tags.astype(int).to_numpy().argmin())]
    return tags.min()


def first_pair_members(steps: pd.DataFrame, first_member: Optional[str] = None) -> pd.Series:
    """Boolean mask of rows belonging to the first member of each (colony, pair_id).

    With ``first_member`` given, that tag is the first member everywhere;
    otherwise the lowest member tag observed in the pair. Tags compare
    numerically when every tag in the pair is a digit string, else lexically.
    """
    if first_member is not None:
        return steps["pair_member"].astype(str) == str(first_member)
    lowest = steps.groupby(["colony", "pair_id"])["pair_member"].transform(_lowest_tag)
    return steps["pair_member"].astype(str) == lowest


def regression_features(choices: pd.DataFrame, first_member: Optional[str] = None) -> pd.DataFrame:
    """Restrict joined choices to exploration-phase steps of first pair members.

    Removes return trips and pair correlation before model fitting. Ambiguous
    joins cannot be fitted and raise JoinAmbiguityError.
    """
    mask = choices["exploration_phase"].astype(bool) & first_pair_members(choices, first_member)
    features = choices[mask].reset_index(drop=True)
    if features["ambiguous"].any():
        n = int(features["ambiguous"].sum())
        raise JoinAmbiguityError(f"{n} ambiguous turn matches remain in the regression feature table")
    return features


def ambiguous_choices(choices: pd.DataFrame) -> pd.DataFrame:
    return choices[choices["ambiguous"]].reset_index(drop=True)


def uturn_consistency(steps: pd.DataFrame, turn_table: TurnTable) -> pd.DataFrame:
    """
    Check every reconstructed reversal against the turn table.

    A reversal is a step at a catalog junction whose node_from equals its
    node_to. ``matches_uturn`` is True when at least one matching turn has
    turn_type U; False means the reversal would be classified as a
    structural L/R turn or not at all.
    """
    known = set(turn_table.junction_ids())
    rev = steps[(steps["node_from"].astype(str) == steps["node_to"].astype(str))
                & steps["junction"].astype(str).isin(known)]
    rows = []
    for r in rev.itertuples(index=False):
        matches = turn_table.lookup(r.junction, r.node_from, r.node_to)
        rows.append({
            "colony": r.colony,
            "ant_id": r.ant_id,
            "path_length": r.path_length,
            "junction": r.junction,
            "node_from": r.node_from,
            "node_to": r.node_to,
            "n_matches": len(matches),
            "matches_uturn": any(t.turn_type == "U" for t in matches),
        })
    out = pd.DataFrame(rows, columns=["colony", "ant_id", "path_length", "junction",
                                      "node_from", "node_to", "n_matches", "matches_uturn"])
    bad = int((~out["matches_uturn"].astype(bool)).sum()) if len(out) else 0
    if bad:
        logger.warning(f"{bad} reconstructed reversals do not match a U turn")
    return out
