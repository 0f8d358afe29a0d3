"""
antroute - Ant route choices on a branching trail network

Turn classification, trajectory reconstruction and exit-probability
assembly for ants moving through a tree of Y-shaped junctions.
"""

__version__ = "0.1.0"

from antroute.antroute_errors import (
    AntRouteError,
    SchemaError,
    ClassificationError,
    JoinAmbiguityError,
    IncompleteModelError,
    ConservationError,
)

from antroute.antroute_config import AnalysisSettings, HandednessOverrides

from antroute.antroute_catalog import Branch, BranchCatalog

from antroute.antroute_turns import Junction, Turn, TurnTable, classify_catalog, classify_junction

from antroute.antroute_trajectory import (
    Observation,
    TrajectoryStep,
    reconstruct_ant,
    reconstruct_trajectories,
)

from antroute.antroute_choices import join_turn_choices, regression_features, uturn_consistency

from antroute.antroute_prediction import (
    FittedModel,
    assemble_predictions,
    exit_distribution,
    predict,
    validate_conservation,
)

from antroute.antroute_tips import TipReference, annotate_tip_arrivals

from antroute.antroute_commands import COMMANDS

__all__ = [
    "AntRouteError",
    "SchemaError",
    "ClassificationError",
    "JoinAmbiguityError",
    "IncompleteModelError",
    "ConservationError",
    "AnalysisSettings",
    "HandednessOverrides",
    "Branch",
    "BranchCatalog",
    "Junction",
    "Turn",
    "TurnTable",
    "classify_catalog",
    "classify_junction",
    "Observation",
    "TrajectoryStep",
    "reconstruct_ant",
    "reconstruct_trajectories",
    "join_turn_choices",
    "regression_features",
    "uturn_consistency",
    "FittedModel",
    "assemble_predictions",
    "exit_distribution",
    "predict",
    "validate_conservation",
    "TipReference",
    "annotate_tip_arrivals",
    "COMMANDS",
]
