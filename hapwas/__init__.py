"""
hapwas: haplotype-wide association scans

Tests haplotype group (H1 vs H2 consensus calls) against many binary
phenotypes with per-phenotype 2x2 chi-squared tests.
"""

__version__ = "0.1.0"
__author__ = "hapwas Development Team"

from .data.loaders import load_consensus_file, load_phenotype_file, merge_cohort
from .data.io_utils import write_association_results
from .association.chi2 import HAPWAS_Chi2
from .pipelines.hapwas import HaplotypeAssociationPipeline
from .utils.data_types import AssociationResult, AssociationResults, DataFormatError

__all__ = [
    'HAPWAS_Chi2',
    'HaplotypeAssociationPipeline',
    'load_consensus_file',
    'load_phenotype_file',
    'merge_cohort',
    'write_association_results',
    'AssociationResult',
    'AssociationResults',
    'DataFormatError',
]
