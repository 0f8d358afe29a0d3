# ------------------------------
# Branch Catalog
# ------------------------------

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterator, List, Tuple

import numpy as np
import pandas as pd

from antroute.antroute_errors import SchemaError
from antroute.antroute_logging import get_logger

logger = get_logger()

ROLES = ("main", "left", "right")
CATALOG_COLUMNS = ["junction_id", "role", "width", "destination_node"]
NARROW = "narrow"
WIDE = "wide"


@dataclass(frozen=True)
class Branch:
    """One physical opening of a junction."""
    junction_id: str
    role: str
    width: float
    destination_node: str


def _rank_widths(branches: Tuple[Branch, ...]) -> Dict[str, str]:
    """Minimum-width branches are narrow (all of them on a tie), the rest wide."""
    min_width = min(b.width for b in branches)
    return {b.role: NARROW if np.isclose(b.width, min_width) else WIDE for b in branches}


class BranchCatalog:
    """Immutable table of every branch at every junction.

    Each junction holds exactly three branches, one per role, ordered
    main/left/right. Width ranks are computed once on construction.
    """

    def __init__(self, branches: List[Branch]):
        grouped: Dict[str, List[Branch]] = {}
        for b in branches:
            grouped.setdefault(b.junction_id, []).append(b)

        by_junction: Dict[str, Tuple[Branch, ...]] = {}
        ranks: Dict[str, Dict[str, str]] = {}
        for jid, items in grouped.items():
            if len(items) != 3:
                raise SchemaError(f"Junction {jid!r} has {len(items)} branches, expected 3")
            roles = [b.role for b in items]
            if sorted(roles) != sorted(ROLES):
                raise SchemaError(f"Junction {jid!r} must have one branch per role {ROLES}, got {roles}")
            ordered = tuple(sorted(items, key=lambda b: ROLES.index(b.role)))
            by_junction[jid] = ordered
            ranks[jid] = _rank_widths(ordered)

        self._branches = MappingProxyType(by_junction)
        self._ranks = MappingProxyType({jid: MappingProxyType(r) for jid, r in ranks.items()})

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "BranchCatalog":
        """Build a catalog from a table with junction_id, role, width, destination_node."""
        missing = [c for c in CATALOG_COLUMNS if c not in df.columns]
        if missing:
            raise SchemaError(f"Branch catalog is missing columns: {missing}")

        branches = []
        for row in df[CATALOG_COLUMNS].itertuples(index=False):
            role = str(row.role).strip().lower()
            if role not in ROLES:
                raise SchemaError(f"Junction {row.junction_id!r}: unknown branch role {row.role!r}")
            try:
                width = float(row.width)
            except (TypeError, ValueError):
                raise SchemaError(f"Junction {row.junction_id!r}: width {row.width!r} is not numeric")
            if not np.isfinite(width) or width <= 0:
                raise SchemaError(f"Junction {row.junction_id!r}: width must be positive, got {row.width!r}")
            if pd.isna(row.destination_node):
                raise SchemaError(f"Junction {row.junction_id!r}: branch {role!r} has no destination node")
            branches.append(Branch(
                junction_id=str(row.junction_id),
                role=role,
                width=width,
                destination_node=str(row.destination_node),
            ))

        catalog = cls(branches)
        logger.debug(f"Branch catalog built: {len(catalog)} junctions")
        return catalog

    def __contains__(self, junction_id: object) -> bool:
        return str(junction_id) in self._branches

    def __len__(self) -> int:
        return len(self._branches)

    def __iter__(self) -> Iterator[str]:
        return iter(self._branches)

    @property
    def junction_ids(self) -> List[str]:
        return list(self._branches)

    @property
    def node_ids(self) -> List[str]:
        """Every node reachable through some branch, in first-seen order."""
        seen: Dict[str, None] = {}
        for branches in self._branches.values():
            for b in branches:
                seen.setdefault(b.destination_node, None)
        return list(seen)

    def branches(self, junction_id: str) -> Tuple[Branch, ...]:
        try:
            return self._branches[str(junction_id)]
        except KeyError:
            raise KeyError(f"Junction {junction_id!r} not in catalog") from None

    def branch(self, junction_id: str, role: str) -> Branch:
        for b in self.branches(junction_id):
            if b.role == role:
                return b
        raise KeyError(f"Junction {junction_id!r} has no {role!r} branch")

    def rel_width(self, junction_id: str, role: str) -> str:
        self.branches(junction_id)
        return self._ranks[str(junction_id)][role]

    def narrow_roles(self, junction_id: str) -> List[str]:
        return [b.role for b in self.branches(junction_id) if self.rel_width(junction_id, b.role) == NARROW]

    def is_width_degenerate(self, junction_id: str) -> bool:
        """True when more than one branch ties for the minimum width."""
        return len(self.narrow_roles(junction_id)) > 1

    def distinct_widths(self, junction_id: str) -> int:
        widths = np.array([b.width for b in self.branches(junction_id)])
        return len(np.unique(widths))

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for jid, branches in self._branches.items():
            for b in branches:
                rows.append({
                    "junction_id": jid,
                    "role": b.role,
                    "width": b.width,
                    "destination_node": b.destination_node,
                    "rel_width": self._ranks[jid][b.role],
                })
        return pd.DataFrame(rows, columns=CATALOG_COLUMNS + ["rel_width"])
