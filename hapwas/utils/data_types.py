"""
Core data structures for haplotype-phenotype association scans
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

ID_COLUMN = 'person_id'
H1_FLAG = 'is_consensus_h1'
H2_FLAG = 'is_consensus_h2'
CONSENSUS_COLUMNS = [H1_FLAG, H2_FLAG]
HAPLOTYPE_COLUMN = 'haplotype'

RESULT_COLUMNS = [
    'Phenotype',
    'H1_Cases',
    'H1_Controls',
    'H2_Cases',
    'H2_Controls',
    'Total_Compared',
    'Chi2_Stat',
    'Phi_Coefficient',
    'P_Value',
]

COUNT_COLUMNS = RESULT_COLUMNS[1:6]
STAT_COLUMNS = RESULT_COLUMNS[6:]

# Per-phenotype outcome labels recorded in diagnostics
STATUS_TESTED = 'tested'
STATUS_LOW_COUNT = 'low_count'
STATUS_NO_VARIATION = 'skipped_no_variation'
STATUS_TOO_FEW = 'skipped_too_few'
STATUS_EMPTY_COHORT = 'skipped_empty_cohort'
STATUS_EMPTY_TABLE = 'not_computable_empty'
STATUS_ZERO_MARGIN = 'not_computable_zero_margin'
STATUS_TEST_FAILED = 'test_failed'
STATUS_ERROR = 'error'

SKIPPED_STATUSES = (STATUS_NO_VARIATION, STATUS_TOO_FEW, STATUS_EMPTY_COHORT)
USABLE_STATUSES = (STATUS_TESTED, STATUS_LOW_COUNT)

PLOT_CHOICES = ('phewas', 'qq')


class DataFormatError(ValueError):
    """Input table is unreadable, lacks required columns, or holds invalid values."""


def is_missing(value) -> bool:
    """True for None and non-finite floats"""
    if value is None:
        return True
    try:
        return not math.isfinite(value)
    except TypeError:
        return False


@dataclass(frozen=True)
class AssociationResult:
    """Single output row for one phenotype.

    Statistical fields use ``None`` for "not computable" so that a computed
    zero can never be confused with a missing statistic. Count fields are
    only ``None`` on the error-isolation path when the table was never built.
    """

    phenotype: str
    h1_cases: Optional[int]
    h1_controls: Optional[int]
    h2_cases: Optional[int]
    h2_controls: Optional[int]
    total_compared: Optional[int]
    chi2_stat: Optional[float] = None
    phi_coefficient: Optional[float] = None
    p_value: Optional[float] = None

    @property
    def is_computable(self) -> bool:
        return not is_missing(self.p_value)

    def to_row(self) -> Dict[str, Union[str, int, float, None]]:
        return {
            'Phenotype': self.phenotype,
            'H1_Cases': self.h1_cases,
            'H1_Controls': self.h1_controls,
            'H2_Cases': self.h2_cases,
            'H2_Controls': self.h2_controls,
            'Total_Compared': self.total_compared,
            'Chi2_Stat': self.chi2_stat,
            'Phi_Coefficient': self.phi_coefficient,
            'P_Value': self.p_value,
        }


@dataclass
class PhenotypeDiagnostic:
    """Why a phenotype did or did not produce a usable statistic."""

    phenotype: str
    status: str
    n_compared: Optional[int] = None
    message: str = ''

    def to_row(self) -> Dict[str, Union[str, int, None]]:
        return {
            'Phenotype': self.phenotype,
            'Status': self.status,
            'N_Compared': self.n_compared,
            'Message': self.message,
        }


@dataclass
class ConsensusSummary:
    """Participant counts by haplotype consensus state."""

    n_total: int
    n_h1_only: int
    n_h2_only: int
    n_ambiguous: int
    n_undetermined: int

    @property
    def n_comparable(self) -> int:
        return self.n_h1_only + self.n_h2_only + self.n_ambiguous


class AssociationResults:
    """Result rows and per-phenotype diagnostics from one association scan."""

    def __init__(self,
                 results: Sequence[AssociationResult] = (),
                 diagnostics: Sequence[PhenotypeDiagnostic] = (),
                 phenotype_order: Optional[Sequence[str]] = None):
        self.results: List[AssociationResult] = list(results)
        self.diagnostics: List[PhenotypeDiagnostic] = list(diagnostics)
        if phenotype_order is None:
            phenotype_order = [d.phenotype for d in self.diagnostics]
        self.phenotype_order: List[str] = list(phenotype_order)

    def __len__(self) -> int:
        return len(self.results)

    @property
    def n_phenotypes(self) -> int:
        return len(self.diagnostics)

    @property
    def n_tested(self) -> int:
        return sum(1 for d in self.diagnostics if d.status in USABLE_STATUSES)

    @property
    def n_skipped(self) -> int:
        return sum(1 for d in self.diagnostics if d.status in SKIPPED_STATUSES)

    @property
    def n_degraded(self) -> int:
        return self.n_phenotypes - self.n_tested - self.n_skipped

    @property
    def n_low_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.status == STATUS_LOW_COUNT)

    def summary(self) -> str:
        return (
            f"{self.n_tested} of {self.n_phenotypes} phenotypes produced a usable result; "
            f"{self.n_skipped} skipped, {self.n_degraded} degraded"
        )

    def sorted(self) -> List[AssociationResult]:
        """Results ordered by ascending P value with not-computable rows last.

        Ties keep phenotype column order, so the ordering does not depend on
        the order in which phenotypes finished.
        """
        position = {name: i for i, name in enumerate(self.phenotype_order)}
        fallback = len(position)

        def sort_key(res: AssociationResult):
            missing = res.p_value is None or is_missing(res.p_value)
            p = 0.0 if missing else float(res.p_value)
            return (missing, p, position.get(res.phenotype, fallback))

        return sorted(self.results, key=sort_key)

    def to_dataframe(self) -> pd.DataFrame:
        """Sorted results as a DataFrame; NaN marks not-computable statistics."""
        rows = [res.to_row() for res in self.sorted()]
        if not rows:
            return pd.DataFrame(columns=RESULT_COLUMNS)
        data = {'Phenotype': [row['Phenotype'] for row in rows]}
        for col in COUNT_COLUMNS:
            data[col] = pd.array([row[col] for row in rows], dtype='Int64')
        for col in STAT_COLUMNS:
            values = [np.nan if is_missing(row[col]) else float(row[col]) for row in rows]
            data[col] = np.array(values, dtype=np.float64)
        return pd.DataFrame(data, columns=RESULT_COLUMNS)

    def diagnostics_dataframe(self) -> pd.DataFrame:
        columns = ['Phenotype', 'Status', 'N_Compared', 'Message']
        if not self.diagnostics:
            return pd.DataFrame(columns=columns)
        df = pd.DataFrame([d.to_row() for d in self.diagnostics], columns=columns)
        df['N_Compared'] = pd.array(df['N_Compared'].tolist(), dtype='Int64')
        return df
