"""
File output utilities for association results
"""

import os
import tempfile
from pathlib import Path
from typing import Union

import pandas as pd

from ..utils.data_types import (
    COUNT_COLUMNS,
    RESULT_COLUMNS,
    STAT_COLUMNS,
    AssociationResults,
    is_missing,
)

NA_TOKEN = 'NA'


def format_statistic(value) -> str:
    """Scientific notation with 4 significant digits; NA when not computable"""
    if is_missing(value):
        return NA_TOKEN
    return f"{float(value):.3e}"


def format_count(value) -> str:
    if value is None or pd.isna(value):
        return NA_TOKEN
    return str(int(value))


def _write_table_atomic(df: pd.DataFrame, file_path: Path) -> None:
    """Write a tab-delimited table via a sibling temp file renamed into place"""
    file_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        prefix=f".{file_path.name}.", suffix='.tmp', dir=str(file_path.parent)
    )
    try:
        with os.fdopen(fd, 'w', newline='') as handle:
            df.to_csv(handle, sep='\t', index=False, na_rep=NA_TOKEN, lineterminator='\n')
        os.replace(tmp_path, file_path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def results_to_text_frame(results: AssociationResults) -> pd.DataFrame:
    """Sorted results with every field already rendered as output text"""
    df = results.to_dataframe()
    if df.empty:
        return pd.DataFrame(columns=RESULT_COLUMNS)
    text = pd.DataFrame({'Phenotype': df['Phenotype'].astype(str)})
    for col in COUNT_COLUMNS:
        text[col] = [format_count(v) for v in df[col]]
    for col in STAT_COLUMNS:
        text[col] = [format_statistic(v) for v in df[col]]
    return text[RESULT_COLUMNS]


def write_association_results(results: AssociationResults,
                              file_path: Union[str, Path]) -> Path:
    """Write the association results table

    Rows are sorted by ascending P value with not-computable rows last.
    With no results the file holds only the header row.

    Args:
        results: Scan output
        file_path: Destination path (parent directories are created)

    Returns:
        Path written
    """
    file_path = Path(file_path)
    _write_table_atomic(results_to_text_frame(results), file_path)
    return file_path


def write_diagnostics(results: AssociationResults,
                      file_path: Union[str, Path]) -> Path:
    """Write one status row per phenotype, in phenotype column order"""
    file_path = Path(file_path)
    _write_table_atomic(results.diagnostics_dataframe(), file_path)
    return file_path


def read_association_results(file_path: Union[str, Path]) -> pd.DataFrame:
    """Read a results table back with NA parsed as missing"""
    df = pd.read_csv(
        file_path, sep='\t', dtype={'Phenotype': str},
        keep_default_na=False, na_values={col: [NA_TOKEN] for col in RESULT_COLUMNS[1:]},
    )
    missing = [col for col in RESULT_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Results file {file_path} is missing columns {missing}")
    for col in COUNT_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors='coerce').astype('Int64')
    for col in STAT_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors='coerce').astype(float)
    return df[RESULT_COLUMNS]
