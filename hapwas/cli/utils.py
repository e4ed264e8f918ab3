import argparse
from typing import List, Optional, Sequence

from ..association.chi2 import DEFAULT_MIN_CELL_COUNT
from ..utils.data_types import ID_COLUMN, PLOT_CHOICES


def normalize_plots(plots: Optional[Sequence[str]]) -> List[str]:
    """Normalize plot selections with comma splitting and deduplication."""
    if not plots:
        return []

    normalized = []
    seen = set()
    for item in plots:
        for part in str(item).split(','):
            part = part.strip().lower()
            if not part:
                continue
            if part not in PLOT_CHOICES:
                raise ValueError(f"Invalid plot choice: {part}")
            if part not in seen:
                normalized.append(part)
                seen.add(part)
    return normalized


def split_list(value: Optional[str]) -> Optional[List[str]]:
    """Split a comma-separated option into a list (None when unset)"""
    if value is None:
        return None
    items = [v.strip() for v in value.split(',') if v.strip()]
    return items or None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Haplotype group x phenotype chi-squared association scan",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Required arguments
    parser.add_argument("--consensus", "-c", required=True,
                       help="Haplotype consensus table (TSV: person_id, is_consensus_h1, is_consensus_h2)")
    parser.add_argument("--phenotype", "-p", required=True,
                       help="Phenotype table (TSV, first column participant ID, one column per phenotype)")
    parser.add_argument("--output", "-o", required=True,
                       help="Association results table to write (TSV)")

    # Optional arguments
    parser.add_argument("--consensus-id-column", default=ID_COLUMN,
                       help="Column name for participant IDs in the consensus table")
    parser.add_argument("--phenotypes", default=None,
                       help="Comma-separated phenotype columns to test (default: all)")
    parser.add_argument("--min-cell-count", type=int, default=DEFAULT_MIN_CELL_COUNT,
                       help="Cell size below which a tested phenotype is flagged low-count")
    parser.add_argument("--n-jobs", type=int, default=1,
                       help="Worker processes for the per-phenotype scan")

    # Output
    parser.add_argument("--diagnostics", default=None,
                       help="Optional per-phenotype status table to write (TSV)")
    parser.add_argument("--plots", nargs='+', default=None,
                       help=f"Plots to generate ({', '.join(PLOT_CHOICES)})")
    parser.add_argument("--plot-prefix", default=None,
                       help="Prefix for plot files (default: output path without extension)")
    parser.add_argument("--quiet", "-q", action='store_true',
                       help="Suppress progress output")

    return parser


def parse_args(argv: Optional[Sequence[str]] = None):
    """Parse command line arguments for the association pipeline"""
    args = build_parser().parse_args(argv)
    if args.min_cell_count < 0:
        raise SystemExit("--min-cell-count must be non-negative")
    if args.n_jobs < 1:
        raise SystemExit("--n-jobs must be at least 1")
    return args
