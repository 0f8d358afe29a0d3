# ------------------------------
# Turn Classifier
# ------------------------------

from collections import Counter
from dataclasses import asdict, dataclass, fields
from typing import Dict, List, Optional, Tuple

import pandas as pd

from antroute.antroute_catalog import NARROW, ROLES, WIDE, BranchCatalog
from antroute.antroute_config import HandednessOverrides
from antroute.antroute_errors import ClassificationError
from antroute.antroute_logging import get_logger

logger = get_logger()

UNDEFINED = "undefined"

# Rotation convention around a Y junction, seen from the entry branch
TURN_TYPES: Dict[Tuple[str, str], str] = {
    ("main", "left"): "L",
    ("main", "right"): "R",
    ("left", "right"): "L",
    ("left", "main"): "R",
    ("right", "main"): "L",
    ("right", "left"): "R",
}

# Angle classes for offshoot entries do not depend on handedness
OFFSHOOT_ANGLES: Dict[Tuple[str, str], str] = {
    ("left", "right"): "sharp",
    ("left", "main"): "shallow",
    ("right", "left"): "shallow",
    ("right", "main"): "sharp",
}

HANDED_SIDE = {"LH": "left", "RH": "right"}
SIDE_HANDEDNESS = {"left": "LH", "right": "RH"}


@dataclass(frozen=True)
class Junction:
    junction_id: str
    handedness: str


@dataclass(frozen=True)
class Turn:
    """A classified entry -> exit transition at one junction."""
    junction_id: str
    role_from: str
    role_to: str
    node_from: str
    node_to: str
    width_from: float
    width_to: float
    rel_width_from: str
    rel_width_to: str
    handedness: str
    turn_type: str
    turn_width: str
    turn_trunk: str
    turn_angle: str
    angle_from: str
    sharp_is_left: bool


TURN_COLUMNS = [f.name for f in fields(Turn)]


def resolve_handedness(catalog: BranchCatalog, junction_id: str,
                       overrides: Optional[HandednessOverrides] = None) -> str:
    """
    Infer LH/RH from which offshoot is the narrow branch.

    Every narrow candidate votes (left -> LH, right -> RH, main abstains).
    If the vote is ambiguous (width tie or no offshoot candidate) and the
    junction has an override entry, the override wins. Otherwise the majority
    vote decides; an empty or tied vote raises ClassificationError.
    """
    overrides = overrides or HandednessOverrides()
    candidates = catalog.narrow_roles(junction_id)
    if not candidates:
        raise ClassificationError(f"Junction {junction_id!r} has no narrow branch")

    votes = [SIDE_HANDEDNESS[r] for r in candidates if r in SIDE_HANDEDNESS]
    ambiguous = len(candidates) > 1 or not votes
    if ambiguous and junction_id in overrides:
        logger.debug(f"Junction {junction_id}: handedness {overrides[junction_id]} taken from overrides")
        return overrides[junction_id]

    if not votes:
        raise ClassificationError(
            f"Junction {junction_id!r}: narrow branch is {candidates}, handedness needs an override"
        )
    ranked = Counter(votes).most_common()
    if len(ranked) > 1 and ranked[0][1] == ranked[1][1]:
        raise ClassificationError(
            f"Junction {junction_id!r}: width tie between {candidates} and no handedness override"
        )
    if ambiguous:
        logger.warning(f"Junction {junction_id}: width tie {candidates} resolved by majority vote to {ranked[0][0]}")
    return ranked[0][0]


def resolved_rel_widths(catalog: BranchCatalog, junction_id: str, handedness: str) -> Dict[str, str]:
    """Width ranks with ties at the minimum broken in favour of the handed offshoot."""
    ranks = {role: catalog.rel_width(junction_id, role) for role in ROLES}
    if not catalog.is_width_degenerate(junction_id):
        return ranks
    handed = HANDED_SIDE[handedness]
    if ranks[handed] != NARROW:
        raise ClassificationError(
            f"Junction {junction_id!r}: handedness {handedness} contradicts widths "
            f"(narrow branches are {catalog.narrow_roles(junction_id)})"
        )
    return {role: NARROW if role == handed else WIDE for role in ROLES}


def turn_type(role_from: str, role_to: str) -> str:
    if role_from == role_to:
        return "U"
    return TURN_TYPES[(role_from, role_to)]


def turn_width(rel_from: str, rel_to: str, same_destination: bool) -> str:
    if same_destination:
        return UNDEFINED
    if rel_from == NARROW:
        return "equal"
    return "narrowing" if rel_to == NARROW else "widening"


def turn_trunk(role_from: str, role_to: str) -> str:
    if role_from == role_to:
        return UNDEFINED
    if role_to == "main":
        return "toward_trunk"
    return "away_from_trunk"


def turn_angle(role_from: str, role_to: str, handedness: str) -> str:
    if role_from == role_to:
        return UNDEFINED
    if role_from == "main":
        return "sharp" if role_to == HANDED_SIDE[handedness] else "shallow"
    return OFFSHOOT_ANGLES[(role_from, role_to)]


def angle_from(role_from: str, handedness: str) -> str:
    """Classify the entry branch: the handed offshoot deviates most and is sharp."""
    if role_from == "main":
        return "main"
    return "sharp" if role_from == HANDED_SIDE[handedness] else "shallow"


def sharp_exit(role_from: str, handedness: str) -> str:
    for role_to in ROLES:
        if turn_angle(role_from, role_to, handedness) == "sharp":
            return role_to
    raise ClassificationError(f"No sharp exit when entering from {role_from!r} on a {handedness} junction")


def classify_junction(catalog: BranchCatalog, junction_id: str,
                      overrides: Optional[HandednessOverrides] = None) -> Tuple[Junction, List[Turn]]:
    """Enumerate and classify all 9 ordered branch pairs of a junction."""
    handedness = resolve_handedness(catalog, junction_id, overrides)
    ranks = resolved_rel_widths(catalog, junction_id, handedness)

    turns = []
    for b_from in catalog.branches(junction_id):
        is_left = sharp_exit(b_from.role, handedness) == "left"
        for b_to in catalog.branches(junction_id):
            same_node = b_from.destination_node == b_to.destination_node
            turns.append(Turn(
                junction_id=junction_id,
                role_from=b_from.role,
                role_to=b_to.role,
                node_from=b_from.destination_node,
                node_to=b_to.destination_node,
                width_from=b_from.width,
                width_to=b_to.width,
                rel_width_from=ranks[b_from.role],
                rel_width_to=ranks[b_to.role],
                handedness=handedness,
                turn_type=turn_type(b_from.role, b_to.role),
                turn_width=turn_width(ranks[b_from.role], ranks[b_to.role], same_node),
                turn_trunk=turn_trunk(b_from.role, b_to.role),
                turn_angle=turn_angle(b_from.role, b_to.role, handedness),
                angle_from=angle_from(b_from.role, handedness),
                sharp_is_left=is_left,
            ))
    return Junction(junction_id, handedness), turns


class TurnTable:
    """Classified turns for a whole catalog, indexed by (junction, node_from, node_to)."""

    def __init__(self, junctions: List[Junction], turns: List[Turn]):
        self.junctions: Tuple[Junction, ...] = tuple(junctions)
        self.turns: Tuple[Turn, ...] = tuple(turns)
        index: Dict[Tuple[str, str, str], List[Turn]] = {}
        for t in self.turns:
            index.setdefault((t.junction_id, t.node_from, t.node_to), []).append(t)
        self._index = {k: tuple(v) for k, v in index.items()}

    def __len__(self) -> int:
        return len(self.turns)

    def handedness(self, junction_id: str) -> str:
        for j in self.junctions:
            if j.junction_id == junction_id:
                return j.handedness
        raise KeyError(f"Junction {junction_id!r} not classified")

    def junction_ids(self) -> List[str]:
        return [j.junction_id for j in self.junctions]

    def lookup(self, junction_id: str, node_from: str, node_to: str) -> Tuple[Turn, ...]:
        """All turns matching a traversal key; more than one means the key is ambiguous."""
        return self._index.get((str(junction_id), str(node_from), str(node_to)), ())

    def ambiguous_keys(self) -> List[Tuple[str, str, str]]:
        return [k for k, v in self._index.items() if len(v) > 1]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(t) for t in self.turns], columns=TURN_COLUMNS)

    def junctions_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(j) for j in self.junctions], columns=["junction_id", "handedness"])


def classify_catalog(catalog: BranchCatalog,
                     overrides: Optional[HandednessOverrides] = None) -> TurnTable:
    """Classify every junction of the catalog. Any unresolvable junction aborts the run."""
    junctions: List[Junction] = []
    turns: List[Turn] = []
    for jid in catalog.junction_ids:
        junction, jturns = classify_junction(catalog, jid, overrides)
        junctions.append(junction)
        turns.extend(jturns)

    table = TurnTable(junctions, turns)
    for key in table.ambiguous_keys():
        logger.warning(f"Turn key {key} matches {len(table.lookup(*key))} branch pairs")
    logger.info(f"Classified {len(turns)} turns at {len(junctions)} junctions")
    return table
