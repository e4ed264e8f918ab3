"""
Haplotype Association Pipeline Module

Wraps the load -> merge -> test -> write sequence for a haplotype consensus
table and a phenotype table into a reusable pipeline class.
"""

import time
import warnings
import pandas as pd
from pathlib import Path
from typing import List, Optional, Dict, Sequence, Union

from ..data.loaders import (
    load_consensus_file, load_phenotype_file, merge_cohort,
    phenotype_columns, summarize_consensus,
)
from ..data.io_utils import write_association_results, write_diagnostics
from ..utils.data_types import (
    ID_COLUMN,
    STATUS_EMPTY_COHORT,
    AssociationResults,
    ConsensusSummary,
    DataFormatError,
    PhenotypeDiagnostic,
)
from ..association.chi2 import HAPWAS_Chi2, DEFAULT_MIN_CELL_COUNT


class HaplotypeAssociationPipeline:
    """
    Haplotype group x phenotype association scan.

    This class manages one run of the analysis:
    1. Data Loading (consensus calls, phenotypes)
    2. Cohort Merge (inner join on participant ID)
    3. Association Testing (2x2 chi-squared per phenotype)
    4. Result Writing (sorted table, optional diagnostics and plots)
    """

    def __init__(self,
                 min_cell_count: int = DEFAULT_MIN_CELL_COUNT,
                 max_workers: int = 1,
                 verbose: bool = True):
        """
        Initialize the pipeline.

        Args:
            min_cell_count: Cell size below which a tested phenotype is flagged
            max_workers: Worker processes for the per-phenotype scan
            verbose: Print progress information
        """
        self.min_cell_count = min_cell_count
        self.max_workers = max_workers
        self.verbose = verbose

        # Data storage
        self.consensus_df: Optional[pd.DataFrame] = None
        self.phenotype_df: Optional[pd.DataFrame] = None
        self.merged_df: Optional[pd.DataFrame] = None
        self.phenotype_names: List[str] = []

        # QC / Metadata
        self.consensus_summary: Optional[ConsensusSummary] = None
        self.merge_summary: Dict[str, int] = {}

        # Analysis State
        self.results: Optional[AssociationResults] = None

    def log(self, message: str):
        """Internal logger"""
        if self.verbose:
            print(message)

    def log_step(self, step_name: str, start_time: Optional[float] = None):
        """Log a pipeline step with optional timing"""
        if start_time is not None:
            elapsed = time.time() - start_time
            self.log(f"{step_name} completed in {elapsed:.2f} seconds")
        else:
            self.log(f"{step_name}...")

    def load_data(self,
                  consensus_file: Union[str, Path],
                  phenotype_file: Union[str, Path],
                  consensus_id_column: str = ID_COLUMN,
                  phenotypes: Optional[Sequence[str]] = None):
        """
        Load and validate both input tables.

        Raises:
            DataFormatError: either table is missing, malformed, or invalid
        """
        step_start = time.time()
        self.log_step("Step 1: Loading and validating input data")

        try:
            self.consensus_df = load_consensus_file(consensus_file, id_column=consensus_id_column)
        except DataFormatError as e:
            raise DataFormatError(f"Error loading consensus file: {e}") from e
        self.consensus_summary = summarize_consensus(self.consensus_df)
        s = self.consensus_summary
        self.log(f"   Loaded {s.n_total} consensus calls "
                 f"(H1 {s.n_h1_only}, H2 {s.n_h2_only}, both {s.n_ambiguous}, neither {s.n_undetermined})")

        try:
            self.phenotype_df = load_phenotype_file(phenotype_file, phenotypes=phenotypes)
        except DataFormatError as e:
            raise DataFormatError(f"Error loading phenotype file: {e}") from e
        self.phenotype_names = list(self.phenotype_df.columns)
        self.log(f"   Loaded {len(self.phenotype_df)} individuals with {len(self.phenotype_names)} phenotypes")

        self.log_step("Data loading", step_start)

    def merge(self) -> pd.DataFrame:
        """Inner-join consensus calls with phenotypes."""
        if self.consensus_df is None or self.phenotype_df is None:
            raise ValueError("Data not loaded. Call load_data() first.")

        step_start = time.time()
        self.log_step("Step 2: Matching participants between tables")

        self.merged_df, self.merge_summary = merge_cohort(self.consensus_df, self.phenotype_df)
        summary = self.merge_summary

        self.log(f"   Consensus participants: {summary['n_consensus']}")
        self.log(f"   Phenotype participants: {summary['n_phenotype']}")
        self.log(f"   Matched Intersection: {summary['n_merged']}")
        dropped = summary['n_consensus_only'] + summary['n_phenotype_only']
        if dropped:
            self.log(f"   Dropped {summary['n_consensus_only']} consensus-only and "
                     f"{summary['n_phenotype_only']} phenotype-only participants")

        if summary['n_merged'] == 0:
            warnings.warn(
                "No participants are present in both the consensus and phenotype tables; "
                "results will be empty"
            )

        self.log_step("Participant matching", step_start)
        return self.merged_df

    def run_analysis(self, phenotypes: Optional[Sequence[str]] = None) -> AssociationResults:
        """Test every phenotype; an empty cohort yields an empty result set."""
        if self.merged_df is None:
            raise ValueError("Cohort not merged. Call merge() first.")

        step_start = time.time()
        self.log_step("Step 3: Running association tests")

        if phenotypes is None:
            phenotypes = self.phenotype_names or phenotype_columns(self.merged_df)

        if len(self.merged_df) == 0:
            self.log("   Merged cohort is empty; skipping association tests")
            diagnostics = [
                PhenotypeDiagnostic(name, STATUS_EMPTY_COHORT, 0, 'merged cohort is empty')
                for name in phenotypes
            ]
            self.results = AssociationResults(diagnostics=diagnostics, phenotype_order=phenotypes)
        else:
            self.results = HAPWAS_Chi2(
                self.merged_df,
                phenotypes=phenotypes,
                min_cell_count=self.min_cell_count,
                max_workers=self.max_workers,
                verbose=self.verbose,
            )

        self.log_step("Association testing", step_start)
        return self.results

    def save_results(self,
                     output_file: Union[str, Path],
                     diagnostics_file: Optional[Union[str, Path]] = None) -> Path:
        """Write the sorted results table (header-only when empty)."""
        if self.results is None:
            raise ValueError("No analysis run. Call run_analysis() first.")

        step_start = time.time()
        self.log_step("Step 4: Writing results")

        path = write_association_results(self.results, output_file)
        self.log(f"   Saved {len(self.results)} result rows to {path}")
        if diagnostics_file is not None:
            diag_path = write_diagnostics(self.results, diagnostics_file)
            self.log(f"   Saved per-phenotype diagnostics to {diag_path}")

        self.log_step("Result writing", step_start)
        return path

    def plot(self,
             output_prefix: Union[str, Path],
             plot_types: Optional[List[str]] = None) -> List[str]:
        """Save PheWAS / Q-Q figures for the current results."""
        if self.results is None:
            raise ValueError("No analysis run. Call run_analysis() first.")

        from ..visualization.phewas import HAPWAS_Report

        report = HAPWAS_Report(
            self.results,
            output_prefix=str(output_prefix),
            plot_types=plot_types,
            verbose=self.verbose,
        )
        return report['files_created']

    def run(self,
            consensus_file: Union[str, Path],
            phenotype_file: Union[str, Path],
            output_file: Union[str, Path],
            consensus_id_column: str = ID_COLUMN,
            phenotypes: Optional[Sequence[str]] = None,
            diagnostics_file: Optional[Union[str, Path]] = None) -> AssociationResults:
        """Load, merge, test, and write once."""
        self.load_data(
            consensus_file,
            phenotype_file,
            consensus_id_column=consensus_id_column,
            phenotypes=phenotypes,
        )
        self.merge()
        self.run_analysis()
        self.save_results(output_file, diagnostics_file=diagnostics_file)

        self.log(f"\n{self.results.summary()}")
        return self.results
