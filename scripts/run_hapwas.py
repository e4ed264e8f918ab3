#!/usr/bin/env python3
"""
Haplotype-phenotype association scan using hapwas
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from hapwas.cli.utils import normalize_plots, parse_args, split_list
from hapwas.pipelines.hapwas import HaplotypeAssociationPipeline
from hapwas.utils.data_types import DataFormatError


def default_plot_prefix(output: str) -> str:
    """Output path with its extension removed"""
    path = Path(output)
    return str(path.with_suffix('')) if path.suffix else str(path)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        plots = normalize_plots(args.plots)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    pipeline = HaplotypeAssociationPipeline(
        min_cell_count=args.min_cell_count,
        max_workers=args.n_jobs,
        verbose=not args.quiet,
    )

    try:
        results = pipeline.run(
            consensus_file=args.consensus,
            phenotype_file=args.phenotype,
            output_file=args.output,
            consensus_id_column=args.consensus_id_column,
            phenotypes=split_list(args.phenotypes),
            diagnostics_file=args.diagnostics,
        )
    except DataFormatError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if plots:
        prefix = args.plot_prefix or default_plot_prefix(args.output)
        pipeline.plot(prefix, plot_types=plots)

    if args.quiet:
        print(results.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
