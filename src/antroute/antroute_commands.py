# ------------------------------
# Command Handler Architecture
# ------------------------------

from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple
import argparse
import os

from antroute.antroute_catalog import BranchCatalog
from antroute.antroute_choices import (
    ambiguous_choices, join_turn_choices, regression_features, uturn_consistency
)
from antroute.antroute_config import AnalysisSettings, HandednessOverrides
from antroute.antroute_data_loader import (
    load_branch_table, load_fitted_model, load_observations, load_tips, save_json, save_table
)
from antroute.antroute_logging import AntRouteLogger, get_logger
from antroute.antroute_prediction import FittedModel, approach_classes, predict, validate_conservation
from antroute.antroute_tips import TipReference, annotate_tip_arrivals, first_tip_arrivals
from antroute.antroute_trajectory import reconstruct_trajectories
from antroute.antroute_turns import TurnTable, classify_catalog


def parse_overrides(values) -> Dict[str, str]:
    """Parse repeated 'JUNCTION=LH' arguments"""
    out: Dict[str, str] = {}
    for item in values or []:
        if "=" not in item:
            raise ValueError(f"Handedness override must look like JUNCTION=LH, got {item!r}")
        jid, hand = item.split("=", 1)
        out[jid.strip()] = hand.strip()
    return out


class BaseCommand(ABC):
    """Abstract base class for all commands"""

    def __init__(self):
        self.logger: AntRouteLogger = get_logger()

    @abstractmethod
    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Add command-specific arguments"""
        pass

    @abstractmethod
    def execute(self, args: argparse.Namespace) -> None:
        """Execute the command"""
        pass

    def _add_common_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--out", required=True, help="Output folder path")
        parser.add_argument("--columns", default=None, help="Column mapping, e.g. junction_id=Node,width=W")
        parser.add_argument("--workers", type=int, default=1, help="Threads for per-ant reconstruction")
        parser.add_argument("--conservation_rtol", type=float, default=1e-9, help="Relative tolerance for sum(p_exit) == 1")

    def _add_catalog_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--catalog", required=True, help="Branch catalog table")
        parser.add_argument("--override", action="append", default=[], metavar="JUNCTION=LH|RH",
                            help="Handedness for a width-tied junction (repeatable)")

    def _create_output_dir(self, out_path: str) -> None:
        """Create output directory if it doesn't exist"""
        os.makedirs(out_path, exist_ok=True)

    def _save_run_args(self, args: argparse.Namespace, out_path: str) -> None:
        """Save run arguments to JSON file"""
        save_json(vars(args), os.path.join(out_path, "run_args.json"))

    def _settings(self, args: argparse.Namespace) -> AnalysisSettings:
        return AnalysisSettings(
            workers=int(getattr(args, "workers", 1) or 1),
            conservation_rtol=float(getattr(args, "conservation_rtol", 1e-9)),
            first_member=getattr(args, "first_member", None),
        )

    def _overrides(self, args: argparse.Namespace) -> HandednessOverrides:
        entries = dict(getattr(args, "handedness_overrides", None) or {})
        entries.update(parse_overrides(getattr(args, "override", None)))
        return HandednessOverrides(entries)

    def _classify(self, args: argparse.Namespace) -> Tuple[BranchCatalog, TurnTable]:
        with self.logger.operation("Classifying turns") as counters:
            catalog = BranchCatalog.from_frame(load_branch_table(args.catalog, args.columns))
            turns = classify_catalog(catalog, self._overrides(args))
            counters["junctions"] = len(catalog)
            counters["turns"] = len(turns)
        return catalog, turns


class ClassifyCommand(BaseCommand):
    """Classify every entry -> exit turn of the branch catalog"""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        self._add_common_arguments(parser)
        self._add_catalog_arguments(parser)

    def execute(self, args: argparse.Namespace) -> None:
        self._create_output_dir(args.out)
        catalog, turns = self._classify(args)
        save_table(catalog.to_frame(), os.path.join(args.out, "branches.csv"))
        save_table(turns.junctions_frame(), os.path.join(args.out, "junctions.csv"))
        save_table(turns.to_frame(), os.path.join(args.out, "turns.csv"))
        save_table(approach_classes(turns), os.path.join(args.out, "approach_classes.csv"))
        self._save_run_args(args, args.out)
        self.logger.info(f"Classification completed. Results saved to {args.out}")


class ReconstructCommand(BaseCommand):
    """Reconstruct directed traversals from the observation log"""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        self._add_common_arguments(parser)
        parser.add_argument("--observations", required=True, help="Observation log table")
        parser.add_argument("--tips", default=None, help="Tip reference table")

    def execute(self, args: argparse.Namespace) -> None:
        self._create_output_dir(args.out)
        settings = self._settings(args)

        with self.logger.operation("Reconstructing trajectories") as counters:
            observations = load_observations(args.observations, args.columns)
            steps = reconstruct_trajectories(observations, settings, show_progress=True)
            counters["steps"] = len(steps)

        if args.tips:
            tips = TipReference.from_frame(load_tips(args.tips, args.columns))
            save_table(first_tip_arrivals(steps, tips), os.path.join(args.out, "first_tip_arrivals.csv"))
            steps = annotate_tip_arrivals(steps, tips)

        save_table(steps, os.path.join(args.out, "trajectory_steps.csv"))
        self._save_run_args(args, args.out)
        self.logger.info(f"Reconstruction completed. Results saved to {args.out}")


class ChoicesCommand(BaseCommand):
    """Join reconstructed traversals to classified turns"""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        self._add_common_arguments(parser)
        self._add_catalog_arguments(parser)
        parser.add_argument("--observations", required=True, help="Observation log table")
        parser.add_argument("--first_member", default=None, help="Pair member tag treated as first member")
        parser.add_argument("--strict", action="store_true", help="Fail on ambiguous turn matches")

    def execute(self, args: argparse.Namespace) -> None:
        self._create_output_dir(args.out)
        settings = self._settings(args)
        _, turns = self._classify(args)

        with self.logger.operation("Reconstructing trajectories") as counters:
            steps = reconstruct_trajectories(load_observations(args.observations, args.columns),
                                             settings, show_progress=True)
            counters["steps"] = len(steps)

        with self.logger.operation("Joining turn choices") as counters:
            choices = join_turn_choices(steps, turns, on_ambiguous="raise" if args.strict else "flag")
            counters["choices"] = len(choices)

        save_table(choices, os.path.join(args.out, "turn_choices.csv"))
        save_table(ambiguous_choices(choices), os.path.join(args.out, "ambiguous_choices.csv"))
        save_table(uturn_consistency(steps, turns), os.path.join(args.out, "uturn_consistency.csv"))

        with self.logger.operation("Building regression features") as counters:
            features = regression_features(choices, settings.first_member)
            counters["rows"] = len(features)
        save_table(features, os.path.join(args.out, "regression_features.csv"))

        self._save_run_args(args, args.out)
        self.logger.info(f"Turn choices completed. Results saved to {args.out}")


class PredictCommand(BaseCommand):
    """Assemble and validate exit probabilities from two fitted models"""

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        self._add_common_arguments(parser)
        self._add_catalog_arguments(parser)
        parser.add_argument("--p_uturn", required=True, help="Fitted P(U-turn) by angle_from, sharp_is_left")
        parser.add_argument("--p_sharp", required=True, help="Fitted P(sharp | not U) by angle_from, sharp_is_left")

    def execute(self, args: argparse.Namespace) -> None:
        self._create_output_dir(args.out)
        settings = self._settings(args)
        _, turns = self._classify(args)

        p_uturn = FittedModel.from_frame(
            "p_uturn", load_fitted_model(args.p_uturn, "p_uturn", args.columns), "p_uturn")
        p_sharp = FittedModel.from_frame(
            "p_sharp_given_not_u",
            load_fitted_model(args.p_sharp, "p_sharp_given_not_u", args.columns),
            "p_sharp_given_not_u")

        with self.logger.operation("Assembling predictions") as counters:
            predictions = predict(turns, p_uturn, p_sharp, rtol=settings.conservation_rtol)
            counters["rows"] = len(predictions)

        save_table(predictions, os.path.join(args.out, "predictions.csv"))
        save_table(validate_conservation(predictions, settings.conservation_rtol),
                   os.path.join(args.out, "conservation.csv"))
        self._save_run_args(args, args.out)
        self.logger.info(f"Prediction completed. Results saved to {args.out}")


COMMANDS = {
    "classify": ClassifyCommand,
    "reconstruct": ReconstructCommand,
    "choices": ChoicesCommand,
    "predict": PredictCommand,
}


def command_help(name: str) -> Optional[str]:
    cls = COMMANDS.get(name)
    return cls.__doc__ if cls else None
