"""
Haplotype group x case/control chi-squared association scan
"""

import concurrent.futures
import time
import warnings
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..data.loaders import phenotype_columns
from ..utils.data_types import (
    H1_FLAG,
    H2_FLAG,
    HAPLOTYPE_COLUMN,
    STATUS_EMPTY_TABLE,
    STATUS_ERROR,
    STATUS_LOW_COUNT,
    STATUS_NO_VARIATION,
    STATUS_TESTED,
    STATUS_TEST_FAILED,
    STATUS_TOO_FEW,
    STATUS_ZERO_MARGIN,
    AssociationResult,
    AssociationResults,
    PhenotypeDiagnostic,
)
from ..utils.stats import has_zero_margin, pearson_chi2_2x2, phi_coefficient

H1_LABEL = 'H1'
H2_LABEL = 'H2'
HAPLOTYPE_ORDER = (H1_LABEL, H2_LABEL)
OUTCOME_ORDER = (0.0, 1.0)  # control, case

DEFAULT_MIN_CELL_COUNT = 5


@dataclass
class ContingencyTest:
    """Outcome of testing one 2x2 table; None marks a statistic that is not computable."""

    chi2_stat: Optional[float]
    phi_coefficient: Optional[float]
    p_value: Optional[float]
    status: str
    message: str = ''


def select_comparable(merged_df: pd.DataFrame) -> pd.DataFrame:
    """Keep participants with a determined haplotype call and label them

    A participant is comparable when both consensus flags are 0 or 1 and at
    least one of them is 1. The ``haplotype`` column is ``H1`` when
    ``is_consensus_h1 == 1`` and ``H2`` otherwise.

    Participants with both flags set are ambiguous; they are kept and
    labelled H1 because H1 is checked first. Callers that need to surface
    these rows should count them with ``count_ambiguous``.
    """
    h1 = merged_df[H1_FLAG]
    h2 = merged_df[H2_FLAG]
    keep = h1.isin([0, 1]) & h2.isin([0, 1]) & ((h1 == 1) | (h2 == 1))

    comparable = merged_df.loc[keep].copy()
    comparable[HAPLOTYPE_COLUMN] = np.where(comparable[H1_FLAG] == 1, H1_LABEL, H2_LABEL)
    return comparable


def count_ambiguous(merged_df: pd.DataFrame) -> int:
    """Number of participants flagged consensus for both H1 and H2"""
    return int(((merged_df[H1_FLAG] == 1) & (merged_df[H2_FLAG] == 1)).sum())


def build_contingency_table(haplotypes: Iterable[str], outcomes: Iterable[float]) -> np.ndarray:
    """Build the 2x2 haplotype x outcome count table

    Rows are always [H1, H2] and columns [control, case]; combinations that
    do not occur are zero rather than dropped.
    """
    labels = np.asarray(list(haplotypes), dtype=object)
    values = np.asarray(list(outcomes), dtype=np.float64)
    if labels.shape[0] != values.shape[0]:
        raise ValueError(
            f"haplotype and outcome lengths differ ({labels.shape[0]} vs {values.shape[0]})"
        )

    table = np.zeros((2, 2), dtype=np.int64)
    for i, label in enumerate(HAPLOTYPE_ORDER):
        in_group = labels == label
        for j, outcome in enumerate(OUTCOME_ORDER):
            table[i, j] = int(np.count_nonzero(in_group & (values == outcome)))
    return table


def evaluate_contingency_table(table: np.ndarray,
                               min_cell_count: int = DEFAULT_MIN_CELL_COUNT) -> ContingencyTest:
    """Run the chi-squared test on a 2x2 table, guarding degenerate shapes

    Checks run in order: an empty table, then a zero row or column margin,
    both of which make every statistic not computable. Cells below
    ``min_cell_count`` do not stop the test; the status becomes
    ``low_count``. A numerical failure inside the test also yields
    not-computable statistics.
    """
    table = np.asarray(table, dtype=np.int64)
    total = int(table.sum())

    if total == 0 or not table.any():
        return ContingencyTest(None, None, None, STATUS_EMPTY_TABLE, 'contingency table is empty')
    if has_zero_margin(table):
        return ContingencyTest(
            None, None, None, STATUS_ZERO_MARGIN,
            f'zero row or column margin in table {table.tolist()}',
        )

    if (table < min_cell_count).any():
        status = STATUS_LOW_COUNT
        message = f'cell count below {min_cell_count}; chi-squared approximation may be unreliable'
    else:
        status = STATUS_TESTED
        message = ''

    try:
        chi2_stat, p_value = pearson_chi2_2x2(table)
    except (ValueError, ArithmeticError) as e:
        return ContingencyTest(None, None, None, STATUS_TEST_FAILED, f'chi-squared test failed: {e}')

    return ContingencyTest(
        chi2_stat=chi2_stat,
        phi_coefficient=phi_coefficient(chi2_stat, total),
        p_value=p_value,
        status=status,
        message=message,
    )


def _counts_from_table(table: Optional[np.ndarray]) -> Tuple[Optional[int], ...]:
    if table is None:
        return (None, None, None, None)
    # (H1 cases, H1 controls, H2 cases, H2 controls)
    return (int(table[0, 1]), int(table[0, 0]), int(table[1, 1]), int(table[1, 0]))


def analyze_phenotype(comparable: pd.DataFrame,
                      phenotype: str,
                      min_cell_count: int = DEFAULT_MIN_CELL_COUNT
                      ) -> Tuple[Optional[AssociationResult], PhenotypeDiagnostic]:
    """Filter, tabulate, and test a single phenotype

    Args:
        comparable: Output of ``select_comparable``
        phenotype: Phenotype column to test
        min_cell_count: Cell size below which the result is flagged low-count

    Returns:
        Tuple of (result, diagnostic). ``result`` is None when the phenotype
        is skipped (fewer than two outcome values or fewer than two rows).
        Any unexpected error is converted into a result whose statistics
        are not computable, carrying whatever counts were already built.
    """
    table = None
    n_compared = None
    try:
        values = comparable[phenotype]
        observed = values.isin(OUTCOME_ORDER)
        outcomes = values[observed].to_numpy(dtype=np.float64)
        haplotypes = comparable.loc[observed, HAPLOTYPE_COLUMN].to_numpy()
        n_compared = int(observed.sum())

        if np.unique(outcomes).size < 2:
            return None, PhenotypeDiagnostic(
                phenotype, STATUS_NO_VARIATION, n_compared,
                'fewer than two distinct outcome values among comparable participants',
            )
        if n_compared < 2:
            return None, PhenotypeDiagnostic(
                phenotype, STATUS_TOO_FEW, n_compared, 'fewer than two comparable participants',
            )

        table = build_contingency_table(haplotypes, outcomes)
        test = evaluate_contingency_table(table, min_cell_count=min_cell_count)

        h1_cases, h1_controls, h2_cases, h2_controls = _counts_from_table(table)
        result = AssociationResult(
            phenotype=phenotype,
            h1_cases=h1_cases,
            h1_controls=h1_controls,
            h2_cases=h2_cases,
            h2_controls=h2_controls,
            total_compared=n_compared,
            chi2_stat=test.chi2_stat,
            phi_coefficient=test.phi_coefficient,
            p_value=test.p_value,
        )
        return result, PhenotypeDiagnostic(phenotype, test.status, n_compared, test.message)

    except Exception as e:
        return (
            _failed_result(phenotype, table, n_compared),
            PhenotypeDiagnostic(phenotype, STATUS_ERROR, n_compared, f'{type(e).__name__}: {e}'),
        )


def _failed_result(phenotype: str,
                   table: Optional[np.ndarray],
                   n_compared: Optional[int]) -> AssociationResult:
    h1_cases, h1_controls, h2_cases, h2_controls = _counts_from_table(table)
    return AssociationResult(
        phenotype=phenotype,
        h1_cases=h1_cases,
        h1_controls=h1_controls,
        h2_cases=h2_cases,
        h2_controls=h2_controls,
        total_compared=n_compared,
    )


def _phenotype_slice(comparable: pd.DataFrame, name: str) -> pd.DataFrame:
    # An absent column is left out so the KeyError surfaces inside analyze_phenotype
    columns = [HAPLOTYPE_COLUMN] + ([name] if name in comparable.columns else [])
    return comparable[columns]


def _analyze_parallel(comparable: pd.DataFrame,
                      phenotypes: Sequence[str],
                      min_cell_count: int,
                      max_workers: int):
    collected = {}
    with concurrent.futures.ProcessPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(
                analyze_phenotype,
                _phenotype_slice(comparable, name),
                name,
                min_cell_count,
            ): name
            for name in phenotypes
        }
        for future in concurrent.futures.as_completed(futures):
            name = futures[future]
            try:
                collected[name] = future.result()
            except Exception as e:
                collected[name] = (
                    _failed_result(name, None, None),
                    PhenotypeDiagnostic(name, STATUS_ERROR, None, f'{type(e).__name__}: {e}'),
                )
    return [collected[name] for name in phenotypes]


def HAPWAS_Chi2(merged: pd.DataFrame,
                phenotypes: Optional[Sequence[str]] = None,
                min_cell_count: int = DEFAULT_MIN_CELL_COUNT,
                max_workers: int = 1,
                verbose: bool = True) -> AssociationResults:
    """Chi-squared association between haplotype group and each phenotype

    Args:
        merged: Merged cohort (consensus flags plus phenotype columns),
            indexed by participant ID
        phenotypes: Phenotype columns to test (default: all non-flag columns)
        min_cell_count: Cell size below which a result is flagged low-count
        max_workers: Worker processes; 1 runs phenotypes sequentially
        verbose: Print progress information

    Returns:
        AssociationResults with one result per non-skipped phenotype and one
        diagnostic per phenotype
    """
    start_time = time.time()
    if phenotypes is None:
        phenotypes = phenotype_columns(merged)
    phenotypes = list(dict.fromkeys(phenotypes))

    comparable = select_comparable(merged)
    n_ambiguous = count_ambiguous(comparable)
    if verbose:
        print(f"Testing {len(phenotypes)} phenotypes across {len(comparable)} comparable participants "
              f"({len(merged) - len(comparable)} without a determined haplotype excluded)")
    if n_ambiguous:
        warnings.warn(
            f"{n_ambiguous} participants are consensus for both H1 and H2; they are labelled H1"
        )

    if max_workers > 1 and len(phenotypes) > 1:
        outcomes = _analyze_parallel(comparable, phenotypes, min_cell_count, max_workers)
    else:
        outcomes = (analyze_phenotype(comparable, name, min_cell_count) for name in phenotypes)

    results: List[AssociationResult] = []
    diagnostics: List[PhenotypeDiagnostic] = []
    for name, (result, diagnostic) in zip(phenotypes, outcomes):
        if result is not None:
            results.append(result)
        diagnostics.append(diagnostic)

        if diagnostic.status == STATUS_ERROR:
            warnings.warn(f"Phenotype '{name}' failed: {diagnostic.message}")
        if verbose and diagnostic.status not in (STATUS_TESTED, STATUS_LOW_COUNT):
            print(f"   {name}: {diagnostic.status} (n={diagnostic.n_compared}) {diagnostic.message}")

    scan = AssociationResults(results, diagnostics, phenotype_order=phenotypes)
    if verbose:
        print(f"   {scan.summary()}")
        if scan.n_low_count:
            print(f"   {scan.n_low_count} tested phenotypes have a cell count below {min_cell_count}")
        print(f"Association scan completed in {time.time() - start_time:.2f} seconds")
    return scan
