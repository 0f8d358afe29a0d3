"""
Exit-probability assembly and conservation check.

Two conditional models are fitted outside this package, both keyed by the
approach class ``(angle_from, sharp_is_left)``:

- ``p_uturn``: probability that the ant reverses at the junction
- ``p_sharp_given_not_u``: probability of taking the sharp exit, given no U-turn

They are combined into the full distribution over the three exits of every
approach (U, sharp, shallow), broadcast to every matching turn, and checked
for conservation per ``(junction, node_from)``.
"""

import math
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from antroute.antroute_errors import ConservationError, IncompleteModelError
from antroute.antroute_logging import get_logger
from antroute.antroute_turns import TurnTable

logger = get_logger()

ModelKey = Tuple[str, bool]
APPROACH_COLUMNS = ["angle_from", "handedness", "role_from", "sharp_is_left"]


def _as_bool(value) -> bool:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        raise IncompleteModelError("sharp_is_left is missing")
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "t", "1", "yes"):
            return True
        if text in ("false", "f", "0", "no"):
            return False
        raise ValueError(f"Cannot interpret {value!r} as sharp_is_left")
    return bool(value)


class FittedModel:
    """Immutable lookup (angle_from, sharp_is_left) -> probability."""

    def __init__(self, name: str, values: Mapping[ModelKey, float]):
        self.name = name
        checked: Dict[ModelKey, float] = {}
        for (angle, is_left), p in values.items():
            p = float(p)
            if math.isnan(p):
                raise IncompleteModelError(f"{name}: probability for ({angle}, {is_left}) is missing")
            if not 0.0 <= p <= 1.0:
                raise ValueError(f"{name}: probability for ({angle}, {is_left}) must lie in [0, 1], got {p}")
            checked[(str(angle), _as_bool(is_left))] = p
        self._values = MappingProxyType(checked)

    @classmethod
    def from_frame(cls, name: str, df: pd.DataFrame, value_column: str) -> "FittedModel":
        missing = [c for c in ("angle_from", "sharp_is_left", value_column) if c not in df.columns]
        if missing:
            raise IncompleteModelError(f"{name}: fitted table is missing columns {missing}")
        values: Dict[ModelKey, float] = {}
        for angle, is_left, p in df[["angle_from", "sharp_is_left", value_column]].itertuples(index=False):
            try:
                key = (str(angle), _as_bool(is_left))
            except IncompleteModelError:
                raise IncompleteModelError(f"{name}: row for angle_from={angle!r} has no sharp_is_left") from None
            if key in values:
                raise ValueError(f"{name}: duplicate fitted probability for {key}")
            values[key] = p
        return cls(name, values)

    def __call__(self, angle_from: str, sharp_is_left: bool) -> float:
        try:
            return self._values[(str(angle_from), bool(sharp_is_left))]
        except KeyError:
            raise IncompleteModelError(
                f"{self.name}: no fitted probability for angle_from={angle_from!r}, sharp_is_left={sharp_is_left}"
            ) from None

    def keys(self) -> List[ModelKey]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)


def exit_distribution(p_uturn: float, p_sharp_given_not_u: float) -> Tuple[float, float, float]:
    """(U, sharp, shallow) exit probabilities for one approach."""
    p_not_u = 1.0 - p_uturn
    return p_uturn, p_not_u * p_sharp_given_not_u, p_not_u * (1.0 - p_sharp_given_not_u)


def approach_classes(turn_table: TurnTable) -> pd.DataFrame:
    """Distinct (angle_from, handedness, role_from, sharp_is_left) combinations."""
    turns = turn_table.to_frame()
    return (turns[APPROACH_COLUMNS]
            .drop_duplicates()
            .sort_values(APPROACH_COLUMNS)
            .reset_index(drop=True))


def assemble_predictions(turn_table: TurnTable, p_uturn: FittedModel,
                         p_sharp_given_not_u: FittedModel) -> pd.DataFrame:
    """
    Build the per-turn exit probability table.

    Probabilities are looked up once per approach class and broadcast to all
    turns of that class. A class missing from either model raises
    IncompleteModelError before any row is produced.

    Returns:
        DataFrame with junction, node_from, node_to, the turn attributes,
        p_uturn, p_sharp_given_not_u and p_exit
    """
    classes = approach_classes(turn_table)
    lookups = []
    for row in classes.itertuples(index=False):
        lookups.append({
            "angle_from": row.angle_from,
            "sharp_is_left": row.sharp_is_left,
            "p_uturn": p_uturn(row.angle_from, row.sharp_is_left),
            "p_sharp_given_not_u": p_sharp_given_not_u(row.angle_from, row.sharp_is_left),
        })
    probs = pd.DataFrame(lookups).drop_duplicates(["angle_from", "sharp_is_left"])
    logger.debug(f"Looked up probabilities for {len(classes)} approach classes")

    turns = turn_table.to_frame().rename(columns={"junction_id": "junction"})
    out = turns.merge(probs, on=["angle_from", "sharp_is_left"], how="left")

    u, sharp, shallow = exit_distribution(out["p_uturn"], out["p_sharp_given_not_u"])
    out["p_exit"] = np.select(
        [out["turn_type"] == "U", out["turn_angle"] == "sharp", out["turn_angle"] == "shallow"],
        [u, sharp, shallow],
        default=np.nan,
    )
    lead = ["junction", "node_from", "node_to", "p_exit"]
    return out[lead + [c for c in out.columns if c not in lead]]


def validate_conservation(predictions: pd.DataFrame, rtol: float = 1e-9) -> pd.DataFrame:
    """
    Check that every way of entering a junction distributes probability 1.

    Each (junction, node_from) group must hold exactly three exits whose
    p_exit values sum to 1 within ``rtol``. Any violation raises
    ConservationError listing the offending groups.

    Returns:
        Per-group totals (junction, node_from, n_exits, p_total)
    """
    totals = (predictions.groupby(["junction", "node_from"], sort=True)
              .agg(n_exits=("p_exit", "size"), p_total=("p_exit", lambda s: s.sum(min_count=len(s))))
              .reset_index())
    ok = (totals["n_exits"] == 3) & np.isclose(totals["p_total"], 1.0, rtol=rtol, atol=0.0)
    bad = totals[~ok]
    if len(bad):
        sample = [(r.junction, r.node_from, r.n_exits, r.p_total) for r in bad.head(5).itertuples(index=False)]
        raise ConservationError(f"{len(bad)} approaches violate probability conservation: {sample}")
    return totals


def predict(turn_table: TurnTable, p_uturn: FittedModel, p_sharp_given_not_u: FittedModel,
            rtol: Optional[float] = None) -> pd.DataFrame:
    """Assemble and validate in one call; nothing is returned unless conservation holds."""
    predictions = assemble_predictions(turn_table, p_uturn, p_sharp_given_not_u)
    validate_conservation(predictions, rtol=1e-9 if rtol is None else rtol)
    logger.info(f"Assembled {len(predictions)} exit probabilities, conservation holds")
    return predictions
