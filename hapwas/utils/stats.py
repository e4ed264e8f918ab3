"""
Statistical utilities for haplotype-phenotype association
"""

import math
import numpy as np
from typing import Tuple, Optional
from scipy import stats


def contingency_margins(table: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Row and column sums of a contingency table"""
    table = np.asarray(table)
    return table.sum(axis=1), table.sum(axis=0)


def has_zero_margin(table: np.ndarray) -> bool:
    """True when any row or column of the table sums to zero"""
    row_sums, col_sums = contingency_margins(table)
    return bool((row_sums == 0).any() or (col_sums == 0).any())


def pearson_chi2_2x2(table: np.ndarray) -> Tuple[float, float]:
    """Pearson chi-squared test on a 2x2 table without continuity correction

    Args:
        table: 2x2 array of non-negative counts

    Returns:
        Tuple of (chi2_statistic, p_value) with 1 degree of freedom

    Raises:
        ValueError: table is not 2x2 or has a zero row/column margin
    """
    table = np.asarray(table, dtype=np.int64)
    if table.shape != (2, 2):
        raise ValueError(f"Expected a 2x2 table, got shape {table.shape}")
    if (table < 0).any():
        raise ValueError("Contingency table counts must be non-negative")
    if has_zero_margin(table):
        raise ValueError("Contingency table has a zero row or column margin")

    chi2, p_value, dof, _expected = stats.chi2_contingency(table, correction=False)
    if dof != 1:
        raise ValueError(f"Unexpected degrees of freedom for 2x2 table: {dof}")

    chi2 = float(chi2)
    p_value = float(p_value)
    if not (math.isfinite(chi2) and math.isfinite(p_value)):
        raise FloatingPointError("Chi-squared test produced a non-finite value")
    return chi2, p_value


def phi_coefficient(chi2: Optional[float], n: Optional[int]) -> Optional[float]:
    """Effect size sqrt(chi2 / n); None when either input is not computable"""
    if chi2 is None or n is None:
        return None
    if not math.isfinite(chi2) or n <= 0 or chi2 < 0:
        return None
    return math.sqrt(chi2 / n)


def genomic_inflation_factor(pvalues: np.ndarray) -> float:
    """Calculate inflation factor (lambda) across phenotype p-values

    Args:
        pvalues: Array of p-values

    Returns:
        Inflation factor (lambda)
    """
    pvalues = np.asarray(pvalues, dtype=float)
    valid_pvals = pvalues[np.isfinite(pvalues) & (pvalues > 0)]
    if len(valid_pvals) == 0:
        return 1.0

    chi2_values = stats.chi2.ppf(1 - valid_pvals, df=1)
    median_chi2 = np.median(chi2_values)
    expected_median = stats.chi2.ppf(0.5, df=1)

    lambda_gc = median_chi2 / expected_median
    return float(lambda_gc)


def qq_plot_data(pvalues: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Prepare data for Q-Q plot

    Args:
        pvalues: Array of observed p-values

    Returns:
        Tuple of (expected_pvalues, observed_pvalues) for plotting
    """
    pvalues = np.asarray(pvalues, dtype=float)
    valid_pvals = pvalues[np.isfinite(pvalues) & (pvalues > 0)]
    valid_pvals = np.sort(valid_pvals)
    n = len(valid_pvals)

    if n == 0:
        return np.array([]), np.array([])

    # Expected p-values under null hypothesis
    expected_pvals = np.arange(1, n + 1) / (n + 1)

    return expected_pvals, valid_pvals
