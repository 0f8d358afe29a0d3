"""
antroute: ant route choices on a branching trail network

Reconstructs ant traversals of a tree of Y-shaped junctions from discrete
observation logs, classifies every entry -> exit turn by junction geometry,
and assembles a validated per-approach exit distribution from two externally
fitted models.

Examples (CLI):

  # Classify every turn of the network
  python -m antroute classify \
      --catalog ./data/branches.csv \
      --override 12=LH \
      --out ./outputs

  # Reconstruct trajectories and build the regression feature table
  python -m antroute choices \
      --catalog ./data/branches.csv \
      --observations ./data/observations.csv \
      --out ./outputs

  # Combine fitted P(U) and P(sharp | not U) into exit probabilities
  python -m antroute predict \
      --catalog ./data/branches.csv \
      --p_uturn ./fits/p_uturn.csv \
      --p_sharp ./fits/p_sharp.csv \
      --out ./outputs

A YAML/JSON file passed with --config may hold a ``defaults`` section, one
section per command, and a ``handedness_overrides`` mapping.
"""

import argparse
import sys
from typing import Optional, Sequence

from antroute.antroute_commands import COMMANDS, command_help
from antroute.antroute_config import load_config_file, overlay_config_on_namespace, parse_columns
from antroute.antroute_logging import get_logger
from antroute.antroute_validation import validate_args


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="antroute", description="Ant route-choice reconstruction and turn analysis")
    parser.add_argument("--config", help="Path to YAML/JSON config with defaults", default=None)
    parser.add_argument("--log_level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    subparsers = parser.add_subparsers(dest="cmd", help="Available commands")
    for cmd_name, cmd_class in COMMANDS.items():
        subparser = subparsers.add_parser(cmd_name, help=command_help(cmd_name))
        cmd_class().add_arguments(subparser)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for antroute"""
    logger = get_logger()
    parser = build_parser()
    args = parser.parse_args(argv)
    logger.set_level(args.log_level)

    if not args.cmd:
        parser.print_help()
        return 2

    args.handedness_overrides = {}
    if args.config:
        cfg = load_config_file(args.config)
        provided = {a.lstrip("-").split("=", 1)[0] for a in (argv if argv is not None else sys.argv[1:])
                    if a.startswith("--")}
        overlay_config_on_namespace(args, cfg, subcommand=args.cmd, provided_keys=provided)
        args.handedness_overrides = dict(cfg.get("handedness_overrides") or {})

    if getattr(args, "columns", None):
        args.columns = parse_columns(args.columns)

    args = validate_args(args, parser)

    try:
        COMMANDS[args.cmd]().execute(args)
    except Exception as e:
        logger.error(f"Command execution failed: {e}")
        raise
    return 0


if __name__ == "__main__":
    sys.exit(main())
