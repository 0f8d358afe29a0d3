# ------------------------------
# Trajectory Reconstruction
# ------------------------------

from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, fields
from typing import Any, List, Optional, Sequence, Tuple

import pandas as pd
from tqdm import tqdm

from antroute.antroute_config import AnalysisSettings
from antroute.antroute_errors import SchemaError
from antroute.antroute_logging import get_logger

logger = get_logger()

OBSERVATION_COLUMNS = ["colony", "ant_id", "timestamp", "junction_visited", "exited_toward", "action"]


@dataclass(frozen=True)
class Observation:
    colony: str
    ant_id: str
    timestamp: Any
    junction_visited: str
    exited_toward: Optional[str] = None
    action: Optional[str] = None


@dataclass(frozen=True)
class TrajectoryStep:
    """One directed traversal node_from -> junction -> node_to."""
    colony: str
    ant_id: str
    pair_id: str
    pair_member: str
    timestamp: Any
    node_from: str
    junction: str
    node_to: str
    action: Optional[str]
    path_length: int
    inspection_count: int
    exploration_phase: bool


STEP_COLUMNS = [f.name for f in fields(TrajectoryStep)]


def split_ant_id(ant_id: str) -> Tuple[str, str]:
    """Ant ids encode the pair in the first character, e.g. 'B2' -> ('B', '2')."""
    ant_id = str(ant_id)
    return ant_id[:1], ant_id[1:]


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    text = str(value).strip()
    return text or None


def reconstruct_ant(observations: Sequence[Observation],
                    settings: Optional[AnalysisSettings] = None) -> List[TrajectoryStep]:
    """
    Turn one ant's time-ordered observations into directed steps.

    Single pass, carrying forward the previous junction and the previous
    record's exited_toward. An exited_toward on the previous record replaces
    the literal previous junction as node_from: the ant set off toward that
    node and came back, so it re-enters from that branch. An exited_toward on
    the current record replaces the next junction as node_to.

    Args:
        observations: Records of a single (colony, ant_id), already ordered
        settings: Sentinels and action labels

    Returns:
        One TrajectoryStep per observation
    """
    settings = settings or AnalysisSettings()
    steps: List[TrajectoryStep] = []
    prev_junction: Optional[str] = None
    prev_exit: Optional[str] = None
    inspections = 0

    for i, obs in enumerate(observations):
        junction = str(obs.junction_visited)
        exit_to = _clean(obs.exited_toward)

        if prev_exit is not None:
            node_from = prev_exit
        elif prev_junction is not None:
            node_from = prev_junction
        else:
            node_from = settings.start_node

        if exit_to is not None:
            node_to = exit_to
        elif i + 1 < len(observations):
            node_to = str(observations[i + 1].junction_visited)
        else:
            node_to = settings.end_node

        pair_id, pair_member = split_ant_id(obs.ant_id)
        steps.append(TrajectoryStep(
            colony=str(obs.colony),
            ant_id=str(obs.ant_id),
            pair_id=pair_id,
            pair_member=pair_member,
            timestamp=obs.timestamp,
            node_from=node_from,
            junction=junction,
            node_to=node_to,
            action=obs.action,
            path_length=i + 1,
            inspection_count=inspections,
            exploration_phase=inspections == 0,
        ))

        if obs.action == settings.inspect_action:
            inspections += 1
        prev_junction = junction
        prev_exit = exit_to

    return steps


def _observations_from_frame(df: pd.DataFrame) -> List[Observation]:
    return [
        Observation(
            colony=str(row.colony),
            ant_id=str(row.ant_id),
            timestamp=row.timestamp,
            junction_visited=str(row.junction_visited),
            exited_toward=_clean(row.exited_toward),
            action=_clean(row.action),
        )
        for row in df.itertuples(index=False)
    ]


def steps_to_frame(steps: Sequence[TrajectoryStep]) -> pd.DataFrame:
    return pd.DataFrame([asdict(s) for s in steps], columns=STEP_COLUMNS)


def reconstruct_trajectories(observations: pd.DataFrame,
                             settings: Optional[AnalysisSettings] = None,
                             show_progress: bool = False) -> pd.DataFrame:
    """
    Reconstruct every ant in an observation log.

    Ants are independent, so with settings.workers > 1 they are processed in
    a thread pool. Junction ids are not checked against the catalog here;
    unknown junctions simply fail to join later. Actions must be the inspect
    or ignore label, or missing; anything else raises SchemaError.

    Returns:
        DataFrame with STEP_COLUMNS, ordered by colony, ant_id, path_length
    """
    settings = settings or AnalysisSettings()
    df = observations.copy()
    if "exited_toward" not in df.columns:
        df["exited_toward"] = None
    if "action" not in df.columns:
        df["action"] = None
    missing = [c for c in OBSERVATION_COLUMNS if c not in df.columns]
    if missing:
        raise SchemaError(f"Observation log is missing columns: {missing}")

    actions = df["action"].map(_clean)
    known = {settings.inspect_action, settings.ignore_action, None}
    unknown = sorted(set(actions.dropna()) - known)
    if unknown:
        raise SchemaError(f"Observation log has unknown actions {unknown}; "
                          f"expected {settings.inspect_action!r} or {settings.ignore_action!r}")
    df["action"] = actions

    df["colony"] = df["colony"].astype(str)
    df["ant_id"] = df["ant_id"].astype(str)
    df = df.sort_values(["colony", "ant_id", "timestamp"], kind="mergesort")
    groups = [g for _, g in df.groupby(["colony", "ant_id"], sort=True)]
    logger.info(f"Reconstructing {len(groups)} ant trajectories from {len(df)} observations")

    def _run(group: pd.DataFrame) -> List[TrajectoryStep]:
        return reconstruct_ant(_observations_from_frame(group[OBSERVATION_COLUMNS]), settings)

    if settings.workers > 1:
        with ThreadPoolExecutor(max_workers=settings.workers) as exe:
            results = list(tqdm(exe.map(_run, groups), total=len(groups),
                                desc="Reconstructing ants", unit="ant", disable=not show_progress))
    else:
        results = [_run(g) for g in tqdm(groups, desc="Reconstructing ants", unit="ant", disable=not show_progress)]

    steps = [s for ant_steps in results for s in ant_steps]
    out = steps_to_frame(steps)
    if len(out):
        out = out.sort_values(["colony", "ant_id", "path_length"], kind="mergesort").reset_index(drop=True)
    return out
