"""
PheWAS-style and Q-Q plot visualization for haplotype association results
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from typing import Dict, List, Optional, Tuple, Union

from ..utils.data_types import PLOT_CHOICES, AssociationResults
from ..utils.stats import genomic_inflation_factor, qq_plot_data


def _results_frame(results: Union[AssociationResults, pd.DataFrame]) -> pd.DataFrame:
    if isinstance(results, AssociationResults):
        return results.to_dataframe()
    if isinstance(results, pd.DataFrame):
        return results
    raise ValueError("Results must be AssociationResults or DataFrame")


def create_phewas_plot(results_df: pd.DataFrame,
                       threshold: Optional[float] = 0.05,
                       title: str = "Haplotype PheWAS",
                       figsize: Tuple[int, int] = (10, 4),
                       point_size: float = 20.0,
                       max_labels: int = 10) -> plt.Figure:
    """Create a -log10(P) plot with one point per phenotype

    Args:
        results_df: DataFrame with ``Phenotype`` and ``P_Value`` columns
        threshold: Nominal significance line (None to omit)
        title: Plot title
        figsize: Figure size
        point_size: Marker size
        max_labels: Number of strongest phenotypes to annotate

    Returns:
        matplotlib Figure object
    """
    if 'P_Value' not in results_df.columns or 'Phenotype' not in results_df.columns:
        raise ValueError("results_df must have Phenotype and P_Value columns")

    fig, ax = plt.subplots(figsize=figsize)
    pvalues = pd.to_numeric(results_df['P_Value'], errors='coerce').astype(float)
    valid = results_df.loc[np.isfinite(pvalues) & (pvalues > 0)]

    if valid.empty:
        ax.text(0.5, 0.5, 'No computable p-values to plot',
                ha='center', va='center', transform=ax.transAxes)
        ax.set_title(title)
        return fig

    names = valid['Phenotype'].astype(str).to_numpy()
    log_p = -np.log10(valid['P_Value'].astype(float).to_numpy())
    x = np.arange(len(names))

    ax.scatter(x, log_p, s=point_size, alpha=0.8, edgecolors='none', color='#1f77b4')

    if threshold is not None and threshold > 0:
        ax.axhline(y=-np.log10(threshold), color='red', linestyle='--', alpha=0.7,
                   label=f'P = {threshold:g}')
        ax.legend(loc='upper right')

    if max_labels > 0:
        top = np.argsort(-log_p, kind='mergesort')[:max_labels]
        for idx in top:
            ax.annotate(names[idx], (x[idx], log_p[idx]), fontsize=7,
                        xytext=(3, 3), textcoords='offset points')

    ax.set_xlabel('Phenotype')
    ax.set_ylabel('-log₁₀(P-value)')
    ax.set_title(title)
    ax.set_xlim(-1, len(names))
    ax.set_xticks([])
    ax.grid(True, axis='y', alpha=0.3)

    plt.tight_layout()
    return fig


def create_qq_plot(pvalues: np.ndarray,
                   title: str = "Q-Q Plot",
                   figsize: Tuple[int, int] = (6, 6)) -> plt.Figure:
    """Create Q-Q plot for phenotype p-values

    Args:
        pvalues: Array of p-values (NaN entries are ignored)
        title: Plot title
        figsize: Figure size

    Returns:
        matplotlib Figure object
    """
    fig, ax = plt.subplots(figsize=figsize)

    pvalues = np.asarray(pvalues, dtype=float)
    expected_pvals, observed_pvals = qq_plot_data(pvalues[pvalues <= 1])

    if len(observed_pvals) == 0:
        ax.text(0.5, 0.5, 'No valid p-values for Q-Q plot',
                ha='center', va='center', transform=ax.transAxes)
        ax.set_title(title)
        return fig

    obs_log = -np.log10(observed_pvals)
    exp_log = -np.log10(expected_pvals)

    ax.scatter(exp_log, obs_log, alpha=0.6, s=8, edgecolors='none')

    max_val = max(np.max(exp_log), np.max(obs_log))
    ax.plot([0, max_val], [0, max_val], 'r--', alpha=0.8, label='Null hypothesis')

    lambda_gc = genomic_inflation_factor(observed_pvals)

    ax.set_xlabel('Expected -log₁₀(P-value)')
    ax.set_ylabel('Observed -log₁₀(P-value)')
    ax.set_title(f'{title}\nλ = {lambda_gc:.3f}')
    ax.grid(True, alpha=0.3)
    ax.legend()

    plt.tight_layout()
    return fig


def HAPWAS_Report(results: Union[AssociationResults, pd.DataFrame],
                  output_prefix: str = "HAPWAS_results",
                  plot_types: Optional[List[str]] = None,
                  threshold: Optional[float] = 0.05,
                  dpi: int = 300,
                  save_plots: bool = True,
                  verbose: bool = True) -> Dict:
    """Generate association plots

    Args:
        results: Scan output or a results DataFrame
        output_prefix: Prefix for output files
        plot_types: Subset of ``PLOT_CHOICES`` (default: all)
        threshold: Nominal significance line on the PheWAS plot
        dpi: Plot resolution
        save_plots: Save plots to files
        verbose: Print progress information

    Returns:
        Dictionary with ``plots`` (name -> Figure) and ``files_created``
    """
    if plot_types is None:
        plot_types = list(PLOT_CHOICES)
    unknown = [p for p in plot_types if p not in PLOT_CHOICES]
    if unknown:
        raise ValueError(f"Unknown plot types: {unknown}")

    df = _results_frame(results)
    report = {'plots': {}, 'files_created': []}

    if verbose:
        print("Generating association plots...")

    if 'phewas' in plot_types:
        fig = create_phewas_plot(df, threshold=threshold)
        report['plots']['phewas'] = fig
        if save_plots:
            filename = f"{output_prefix}_phewas.png"
            fig.savefig(filename, dpi=dpi, bbox_inches='tight')
            report['files_created'].append(filename)

    if 'qq' in plot_types:
        pvalues = pd.to_numeric(df.get('P_Value', pd.Series(dtype=float)), errors='coerce').to_numpy(dtype=float)
        fig = create_qq_plot(pvalues)
        report['plots']['qq'] = fig
        if save_plots:
            filename = f"{output_prefix}_qq.png"
            fig.savefig(filename, dpi=dpi, bbox_inches='tight')
            report['files_created'].append(filename)

    if save_plots:
        for fig in report['plots'].values():
            plt.close(fig)

    if verbose:
        for filename in report['files_created']:
            print(f"   Saved {filename}")

    return report
