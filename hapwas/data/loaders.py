"""
Data loading utilities for haplotype consensus and phenotype tables
"""

import warnings
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..utils.data_types import (
    CONSENSUS_COLUMNS,
    H1_FLAG,
    H2_FLAG,
    HAPLOTYPE_COLUMN,
    ID_COLUMN,
    ConsensusSummary,
    DataFormatError,
)


def detect_separator(filepath: Union[str, Path]) -> str:
    """Pick the delimiter for a tabular input

    Args:
        filepath: Path to file

    Returns:
        '\\t' or ','
    """
    filepath = Path(filepath)
    name_lower = filepath.name.lower()
    for suffix in ('.gz', '.bz2', '.xz', '.zip'):
        if name_lower.endswith(suffix):
            name_lower = name_lower[:-len(suffix)]
    if name_lower.endswith('.tsv') or name_lower.endswith('.txt'):
        return '\t'
    if name_lower.endswith('.csv'):
        return ','

    try:
        with filepath.open('r') as handle:
            first_line = handle.readline()
    except (OSError, UnicodeDecodeError):
        return '\t'
    # Tab-delimited unless the header has no tab at all; phenotype names may hold commas
    if '\t' not in first_line and ',' in first_line:
        return ','
    return '\t'


def _read_table(filepath: Union[str, Path], label: str, **read_kwargs) -> pd.DataFrame:
    filepath = Path(filepath)
    if not filepath.exists():
        raise DataFormatError(f"{label} file not found: {filepath}")
    try:
        return pd.read_csv(filepath, sep=detect_separator(filepath), **read_kwargs)
    except pd.errors.EmptyDataError as e:
        raise DataFormatError(f"{label} file is empty: {filepath}") from e
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise DataFormatError(f"Could not parse {label.lower()} file {filepath}: {e}") from e


def _check_unique_ids(ids: pd.Series, label: str) -> None:
    duplicated = ids[ids.duplicated()]
    if len(duplicated):
        examples = ', '.join(sorted(set(duplicated.astype(str)))[:5])
        raise DataFormatError(
            f"{label} table has {len(duplicated)} duplicated participant IDs (e.g. {examples})"
        )


def _coerce_binary_flag(values: pd.Series, column: str) -> pd.Series:
    """Convert a consensus flag column to int, failing on anything but 0/1"""
    numeric = pd.to_numeric(values.str.strip(), errors='coerce')
    bad = numeric.isna() | ~numeric.isin([0, 1])
    if bad.any():
        offending = values[bad]
        examples = ', '.join(repr(v) for v in offending.unique()[:5])
        raise DataFormatError(
            f"Column '{column}' must contain only 0 or 1; found {int(bad.sum())} "
            f"invalid values (e.g. {examples})"
        )
    return numeric.astype(np.int64)


def load_consensus_file(filepath: Union[str, Path],
                        id_column: str = ID_COLUMN) -> pd.DataFrame:
    """Load a haplotype consensus table

    Expected format: delimited text with header
    ``person_id, is_consensus_h1, is_consensus_h2``.

    Args:
        filepath: Path to consensus file
        id_column: Name of the participant identity column

    Returns:
        DataFrame indexed by string participant ID (index name ``person_id``)
        with integer columns ``is_consensus_h1`` and ``is_consensus_h2``

    Raises:
        DataFormatError: missing columns, duplicate IDs, or non-binary flags
    """
    df = _read_table(
        filepath, 'Consensus',
        dtype=str, keep_default_na=False, na_values=[],
    )

    required = [id_column] + CONSENSUS_COLUMNS
    missing = [col for col in required if col not in df.columns]
    if missing:
        raise DataFormatError(
            f"Consensus file {filepath} is missing required columns {missing}; "
            f"found {list(df.columns)}"
        )

    extra = [col for col in df.columns if col not in required]
    if extra:
        warnings.warn(
            f"Ignoring {len(extra)} unexpected consensus columns: {extra}"
        )

    ids = df[id_column].astype(str).str.strip()
    if (ids == '').any():
        raise DataFormatError(f"Consensus file {filepath} has rows with an empty '{id_column}'")
    _check_unique_ids(ids, 'Consensus')

    result = pd.DataFrame(
        {
            H1_FLAG: _coerce_binary_flag(df[H1_FLAG], H1_FLAG).to_numpy(),
            H2_FLAG: _coerce_binary_flag(df[H2_FLAG], H2_FLAG).to_numpy(),
        },
        index=pd.Index(ids.to_numpy(), name=ID_COLUMN, dtype=object),
    )
    return result


def load_phenotype_file(filepath: Union[str, Path],
                        phenotypes: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Load a participant x phenotype table

    The first column is the participant identity whatever its header says.
    Every other column is a phenotype; values become float with 1.0 (case),
    0.0 (control) and NaN for empty, ``NA`` or any other non-numeric text.

    Args:
        filepath: Path to phenotype file
        phenotypes: Optional subset of phenotype columns to keep, in order

    Returns:
        DataFrame indexed by string participant ID (index name ``person_id``)
        with one float column per phenotype, in header order

    Raises:
        DataFormatError: unreadable file, duplicate IDs, or unknown phenotypes
    """
    df = _read_table(
        filepath, 'Phenotype',
        dtype=str, keep_default_na=False, na_values=[],
    )
    if df.shape[1] < 1:
        raise DataFormatError(f"Phenotype file {filepath} has no identity column")

    id_col = df.columns[0]
    ids = df[id_col].astype(str).str.strip()
    empty_ids = ids == ''
    if empty_ids.any():
        warnings.warn(
            f"Dropping {int(empty_ids.sum())} phenotype rows with an empty participant ID"
        )
        df = df.loc[~empty_ids]
        ids = ids.loc[~empty_ids]
    _check_unique_ids(ids, 'Phenotype')

    columns = [c for c in df.columns if c != id_col]
    if phenotypes is not None:
        unknown = [p for p in phenotypes if p not in columns]
        if unknown:
            raise DataFormatError(
                f"Requested phenotypes not found in {filepath}: {unknown}"
            )
        columns = list(dict.fromkeys(phenotypes))

    # Empty cells, 'NA' and any other non-numeric text all coerce to NaN
    data = {col: pd.to_numeric(df[col].str.strip(), errors='coerce').astype(np.float64).to_numpy()
            for col in columns}
    result = pd.DataFrame(
        data,
        index=pd.Index(ids.to_numpy(), name=ID_COLUMN, dtype=object),
        columns=columns,
    )
    return result


def summarize_consensus(consensus_df: pd.DataFrame) -> ConsensusSummary:
    """Count participants by consensus state (H1-only, H2-only, both, neither)"""
    h1 = consensus_df[H1_FLAG] == 1
    h2 = consensus_df[H2_FLAG] == 1
    return ConsensusSummary(
        n_total=len(consensus_df),
        n_h1_only=int((h1 & ~h2).sum()),
        n_h2_only=int((~h1 & h2).sum()),
        n_ambiguous=int((h1 & h2).sum()),
        n_undetermined=int((~h1 & ~h2).sum()),
    )


def merge_cohort(consensus_df: pd.DataFrame,
                 phenotype_df: pd.DataFrame) -> Tuple[pd.DataFrame, Dict[str, int]]:
    """Inner-join consensus calls and phenotypes on participant ID

    Participants present in only one table are dropped; the counts are
    returned so that an empty cohort can be told apart from a join on
    mismatched identifiers.

    Args:
        consensus_df: Output of ``load_consensus_file``
        phenotype_df: Output of ``load_phenotype_file``

    Returns:
        Tuple of (merged_df, summary_stats). ``merged_df`` is indexed by
        participant ID in sorted order with the two consensus flags followed
        by the phenotype columns; it may be empty.
    """
    reserved = [c for c in CONSENSUS_COLUMNS + [HAPLOTYPE_COLUMN] if c in phenotype_df.columns]
    if reserved:
        raise DataFormatError(
            f"Phenotype table uses reserved column names {reserved}"
        )

    consensus = consensus_df.copy()
    phenotypes = phenotype_df.copy()
    consensus.index = consensus.index.astype(str)
    phenotypes.index = phenotypes.index.astype(str)

    merged = consensus[CONSENSUS_COLUMNS].join(phenotypes, how='inner')
    merged = merged.sort_index(kind='mergesort')
    merged.index.name = ID_COLUMN

    consensus_ids = set(consensus.index)
    phenotype_ids = set(phenotypes.index)
    summary = {
        'n_consensus': len(consensus_ids),
        'n_phenotype': len(phenotype_ids),
        'n_merged': len(merged),
        'n_consensus_only': len(consensus_ids - phenotype_ids),
        'n_phenotype_only': len(phenotype_ids - consensus_ids),
    }
    return merged, summary


def phenotype_columns(merged_df: pd.DataFrame) -> List[str]:
    """Phenotype column names of a merged cohort, in column order"""
    return [c for c in merged_df.columns if c not in CONSENSUS_COLUMNS and c != HAPLOTYPE_COLUMN]
