"""
Association testing methods for haplotype-phenotype scans
"""

from .chi2 import HAPWAS_Chi2

__all__ = ['HAPWAS_Chi2']
