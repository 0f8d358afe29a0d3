# ------------------------------
# Table Loading
# ------------------------------

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional
import json
import os

import numpy as np
import pandas as pd

from antroute.antroute_errors import SchemaError
from antroute.antroute_logging import get_logger


@dataclass
class ColumnMapping:
    """Logical column name -> column name in the input files"""
    # Branch catalog
    junction_id: str = "junction_id"
    role: str = "role"
    width: str = "width"
    destination_node: str = "destination_node"
    # Observation log
    colony: str = "colony"
    ant_id: str = "ant_id"
    timestamp: str = "timestamp"
    junction_visited: str = "junction_visited"
    exited_toward: str = "exited_toward"
    action: str = "action"
    # Tip reference
    tip_id: str = "tip_id"
    type: str = "type"
    location: str = "location"
    distance_from_trunk: str = "distance_from_trunk"
    # Fitted model tables
    angle_from: str = "angle_from"
    sharp_is_left: str = "sharp_is_left"
    p_uturn: str = "p_uturn"
    p_sharp_given_not_u: str = "p_sharp_given_not_u"

    @classmethod
    def from_dict(cls, columns: Optional[Dict[str, str]]) -> 'ColumnMapping':
        """Create column mapping from dictionary, keeping defaults for the rest"""
        columns = columns or {}
        unknown = set(columns) - {f.name for f in fields(cls)}
        if unknown:
            raise ValueError(f"Unknown column names in mapping: {sorted(unknown)}")
        return cls(**columns)


class TableLoader:
    """Reads input tables and renames their columns to logical names"""

    def __init__(self, column_mapping: Optional[ColumnMapping] = None):
        self.columns = column_mapping or ColumnMapping()
        self.logger = get_logger()

    def _read_table(self, path: str) -> pd.DataFrame:
        """Read table from various formats"""
        if not os.path.exists(path):
            raise FileNotFoundError(f"Input table not found: {path}")
        ext = os.path.splitext(path)[1].lower()
        if ext in {".csv", ".tsv"}:
            sep = "," if ext == ".csv" else "\t"
            return pd.read_csv(path, sep=sep, dtype=str, keep_default_na=True)
        if ext in {".parquet", ".pq"}:
            return pd.read_parquet(path)
        # Fallback: try CSV
        return pd.read_csv(path, dtype=str)

    def _select(self, df: pd.DataFrame, logical: List[str], optional: List[str], what: str) -> pd.DataFrame:
        rename = {getattr(self.columns, name): name for name in logical + optional}
        missing = [getattr(self.columns, name) for name in logical
                   if getattr(self.columns, name) not in df.columns]
        if missing:
            raise SchemaError(f"{what} is missing columns: {missing}")
        out = df.rename(columns=rename)
        for name in optional:
            if name not in out.columns:
                out[name] = None
        return out[logical + optional].copy()

    def load(self, path: str, logical: List[str], what: str, optional: Optional[List[str]] = None) -> pd.DataFrame:
        df = self._select(self._read_table(path), logical, optional or [], what)
        self.logger.info(f"Loaded {what}: {len(df)} rows from {path}")
        return df


def _strip_ids(df: pd.DataFrame, cols: List[str]) -> pd.DataFrame:
    for c in cols:
        df[c] = df[c].map(lambda v: v if v is None or (isinstance(v, float) and np.isnan(v)) else str(v).strip())
    return df


def load_branch_table(path: str, columns: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    loader = TableLoader(ColumnMapping.from_dict(columns))
    df = loader.load(path, ["junction_id", "role", "width", "destination_node"], "branch catalog")
    df = _strip_ids(df, ["junction_id", "role", "destination_node"])
    df["width"] = pd.to_numeric(df["width"], errors="coerce")
    return df


def load_observations(path: str, columns: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    loader = TableLoader(ColumnMapping.from_dict(columns))
    df = loader.load(path, ["colony", "ant_id", "timestamp", "junction_visited"], "observation log",
                     optional=["exited_toward", "action"])
    df = _strip_ids(df, ["colony", "ant_id", "junction_visited", "exited_toward", "action"])
    numeric = pd.to_numeric(df["timestamp"], errors="coerce")
    if numeric.notna().all():
        df["timestamp"] = numeric
    else:
        parsed = pd.to_datetime(df["timestamp"], errors="coerce")
        if parsed.isna().any():
            raise SchemaError("Observation timestamps must be all numeric or all date/times")
        df["timestamp"] = parsed
    return df


def load_tips(path: str, columns: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    loader = TableLoader(ColumnMapping.from_dict(columns))
    df = loader.load(path, ["tip_id", "type", "location"], "tip reference", optional=["distance_from_trunk"])
    return _strip_ids(df, ["tip_id"])


def load_fitted_model(path: str, value_column: str, columns: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    loader = TableLoader(ColumnMapping.from_dict(columns))
    df = loader.load(path, ["angle_from", "sharp_is_left", value_column], f"fitted {value_column} table")
    df[value_column] = pd.to_numeric(df[value_column], errors="coerce")
    return df


def save_table(df: pd.DataFrame, path: str) -> None:
    """Save a result table to CSV"""
    df.to_csv(path, index=False)


def save_json(obj: Any, path: str) -> None:
    with open(path, "w") as f:
        json.dump(obj, f, indent=2, default=str)
