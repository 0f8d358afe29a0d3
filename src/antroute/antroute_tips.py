# ------------------------------
# Tip Reference
# ------------------------------

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Optional

import pandas as pd

from antroute.antroute_errors import SchemaError

TIP_COLUMNS = ["tip_id", "type", "location", "distance_from_trunk"]
ANNOTATION_COLUMNS = ["tip_type", "tip_location", "tip_distance_from_trunk", "is_tip"]


@dataclass(frozen=True)
class Tip:
    tip_id: str
    type: str
    location: str
    distance_from_trunk: Optional[float] = None


class TipReference:
    """Terminal nodes of the network and what sits at each (nest, food, ...)."""

    def __init__(self, tips: List[Tip]):
        by_id: Dict[str, Tip] = {}
        for tip in tips:
            if tip.tip_id in by_id:
                raise SchemaError(f"Duplicate tip id {tip.tip_id!r}")
            by_id[tip.tip_id] = tip
        self._tips = MappingProxyType(by_id)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "TipReference":
        missing = [c for c in TIP_COLUMNS if c not in df.columns]
        if missing:
            raise SchemaError(f"Tip reference is missing columns: {missing}")
        tips = []
        for row in df[TIP_COLUMNS].itertuples(index=False):
            dist = pd.to_numeric(row.distance_from_trunk, errors="coerce")
            tips.append(Tip(
                tip_id=str(row.tip_id),
                type=str(row.type),
                location=str(row.location),
                distance_from_trunk=None if pd.isna(dist) else float(dist),
            ))
        return cls(tips)

    def __contains__(self, tip_id: object) -> bool:
        return str(tip_id) in self._tips

    def __len__(self) -> int:
        return len(self._tips)

    def get(self, tip_id: str) -> Optional[Tip]:
        return self._tips.get(str(tip_id))

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([vars(t) for t in self._tips.values()], columns=TIP_COLUMNS)


def annotate_tip_arrivals(steps: pd.DataFrame, tips: TipReference) -> pd.DataFrame:
    """Mark steps whose visited node is a tip, with the tip's type and location.

    Existing annotation columns are replaced, so annotating twice is harmless.
    """
    out = steps.drop(columns=[c for c in ANNOTATION_COLUMNS if c in steps.columns])
    ref = tips.to_frame().rename(columns={
        "tip_id": "junction",
        "type": "tip_type",
        "location": "tip_location",
        "distance_from_trunk": "tip_distance_from_trunk",
    })
    out["junction"] = out["junction"].astype(str)
    out = out.merge(ref, on="junction", how="left")
    out["is_tip"] = out["junction"].isin(ref["junction"])
    return out


def first_tip_arrivals(steps: pd.DataFrame, tips: TipReference) -> pd.DataFrame:
    """First tip reached by each ant, with the path length and phase at arrival."""
    annotated = annotate_tip_arrivals(steps, tips)
    arrivals = annotated[annotated["is_tip"]]
    cols = ["colony", "ant_id", "junction", "tip_type", "tip_location",
            "tip_distance_from_trunk", "path_length", "exploration_phase"]
    first = (arrivals.sort_values(["colony", "ant_id", "path_length"], kind="mergesort")
             .groupby(["colony", "ant_id"], sort=True)
             .head(1))
    return first[cols].rename(columns={"junction": "tip_id"}).reset_index(drop=True)
