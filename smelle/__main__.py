"""
Smell-e Report CLI
==================

Command-line interface for the Smell-e analysis report.

Usage:
    python -m smelle                          # Run all sections
    python -m smelle --list                   # List available sections
    python -m smelle -s h1a                   # Run one section
    python -m smelle --variant excluded       # Drop blinding-check failures
    python -m smelle --blinded --coding sum   # Blinded export, sum-to-zero contrasts
"""

import sys
if sys.platform.startswith("win") and hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding='utf-8')

import argparse

from .config import VALID_CODINGS, VALID_VARIANTS, AnalysisConfig, parse_level_order
from .errors import ConfigurationError
from .report import list_analyses, run


def build_config(args: argparse.Namespace) -> AnalysisConfig:
    overrides = {
        "variant": args.variant,
        "blinded": args.blinded,
        "contrast_coding": args.coding,
        "refit_on_change": args.refit_on_change,
    }
    if args.exposure_order:
        overrides["exposure_levels"] = parse_level_order(args.exposure_order)
    for name in ("draws", "tune", "chains", "cores"):
        value = getattr(args, name)
        if value is not None:
            overrides[name] = value
    if args.data_url:
        overrides["data_url"] = args.data_url
    return AnalysisConfig().with_overrides(**overrides)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Smell-e Food-Cue Reactivity Report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m smelle --list
    python -m smelle -s manipulation_checks
    python -m smelle -s h1c --exposure-order RL,MVR,UVR --coding sum
    python -m smelle --variant excluded --refit-on-change
        """
    )

    parser.add_argument(
        '--section', '-s',
        type=str,
        default=None,
        help='Specific section to run (use --list to see options)'
    )
    parser.add_argument(
        '--list', '-l',
        action='store_true',
        help='List available sections'
    )
    parser.add_argument(
        '--variant',
        choices=VALID_VARIANTS,
        default="all",
        help='Analysis variant: all participants or excluding blinding-check failures'
    )
    parser.add_argument(
        '--blinded',
        action='store_true',
        help='Use the blinded export and codebook'
    )
    parser.add_argument(
        '--coding',
        choices=VALID_CODINGS,
        default="treatment",
        help='Contrast coding for categorical predictors'
    )
    parser.add_argument(
        '--exposure-order',
        type=str,
        default=None,
        help='Comma-separated exposure level order; the first level is the reference'
    )
    parser.add_argument('--draws', type=int, default=None, help='Post-warmup draws per chain')
    parser.add_argument('--tune', type=int, default=None, help='Warmup iterations per chain')
    parser.add_argument('--chains', type=int, default=None, help='Number of chains')
    parser.add_argument('--cores', type=int, default=None, help='Parallel chains (default: SMELLE_CORES or 4)')
    parser.add_argument(
        '--data-url',
        type=str,
        default=None,
        help='Download URL of the export (default: SMELLE_DATA_URL / SMELLE_BLINDED_DATA_URL)'
    )
    parser.add_argument(
        '--refit-on-change',
        action='store_true',
        help='Fail when a cached fit was produced by a different model specification'
    )
    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Suppress verbose output'
    )

    args = parser.parse_args(argv)

    if args.list:
        list_analyses()
        return 0

    try:
        config = build_config(args)
    except ConfigurationError as e:
        parser.error(str(e))

    results = run(section=args.section, config=config, verbose=not args.quiet)
    return 1 if (results["status"]["status"] == "error").any() else 0


if __name__ == "__main__":
    sys.exit(main())
