"""Tests for consensus/phenotype loading and cohort merging."""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from hapwas.data import loaders
from hapwas.utils.data_types import DataFormatError


def _write(path: Path, text: str) -> Path:
    path.write_text(text)
    return path


def test_load_consensus_keeps_ids_as_text(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "consensus.tsv",
        "person_id\tis_consensus_h1\tis_consensus_h2\n"
        "00123\t1\t0\n"
        "1000000000000000001\t0\t1\n"
        "7\t0\t0\n",
    )

    df = loaders.load_consensus_file(path)

    assert list(df.index) == ["00123", "1000000000000000001", "7"]
    assert df.index.name == "person_id"
    assert list(df.columns) == ["is_consensus_h1", "is_consensus_h2"]
    assert df["is_consensus_h1"].tolist() == [1, 0, 0]
    assert df["is_consensus_h2"].tolist() == [0, 1, 0]
    assert df["is_consensus_h1"].dtype == np.int64


def test_load_consensus_missing_column_is_format_error(tmp_path: Path) -> None:
    path = _write(tmp_path / "consensus.tsv", "person_id\tis_consensus_h1\n1\t1\n")

    with pytest.raises(DataFormatError, match="is_consensus_h2"):
        loaders.load_consensus_file(path)


@pytest.mark.parametrize("bad_value", ["2", "yes", "", "0.5", "-1"])
def test_load_consensus_rejects_non_binary_flags(tmp_path: Path, bad_value: str) -> None:
    path = _write(
        tmp_path / "consensus.tsv",
        "person_id\tis_consensus_h1\tis_consensus_h2\n"
        "1\t1\t0\n"
        f"2\t{bad_value}\t0\n",
    )

    with pytest.raises(DataFormatError, match="is_consensus_h1"):
        loaders.load_consensus_file(path)


def test_load_consensus_rejects_duplicate_ids(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "consensus.tsv",
        "person_id\tis_consensus_h1\tis_consensus_h2\n1\t1\t0\n1\t0\t1\n",
    )

    with pytest.raises(DataFormatError, match="duplicated"):
        loaders.load_consensus_file(path)


def test_load_consensus_drops_extra_columns_with_warning(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "consensus.tsv",
        "person_id\tis_consensus_h1\tis_consensus_h2\tnote\n1\t1\t0\tx\n",
    )

    with pytest.warns(UserWarning, match="note"):
        df = loaders.load_consensus_file(path)

    assert list(df.columns) == ["is_consensus_h1", "is_consensus_h2"]


def test_load_missing_file_is_format_error(tmp_path: Path) -> None:
    with pytest.raises(DataFormatError, match="not found"):
        loaders.load_consensus_file(tmp_path / "absent.tsv")
    with pytest.raises(DataFormatError, match="not found"):
        loaders.load_phenotype_file(tmp_path / "absent.tsv")


def test_load_empty_file_is_format_error(tmp_path: Path) -> None:
    path = _write(tmp_path / "empty.tsv", "")

    with pytest.raises(DataFormatError, match="empty"):
        loaders.load_phenotype_file(path)


def test_load_phenotype_coerces_values_and_missing_tokens(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "phenotypes.tsv",
        "eid\tasthma\tgout\n"
        "001\t1\t0\n"
        "002\t0\tNA\n"
        "003\t\tunknown\n"
        "004\t1.0\tna\n",
    )

    df = loaders.load_phenotype_file(path)

    assert df.index.name == "person_id"
    assert list(df.index) == ["001", "002", "003", "004"]
    assert list(df.columns) == ["asthma", "gout"]
    np.testing.assert_array_equal(df["asthma"].to_numpy(), np.array([1.0, 0.0, np.nan, 1.0]))
    np.testing.assert_array_equal(df["gout"].to_numpy(), np.array([0.0, np.nan, np.nan, np.nan]))


def test_load_phenotype_subset_and_unknown_columns(tmp_path: Path) -> None:
    path = _write(tmp_path / "phenotypes.tsv", "id\ta\tb\tc\n1\t1\t0\t1\n")

    df = loaders.load_phenotype_file(path, phenotypes=["c", "a"])
    assert list(df.columns) == ["c", "a"]

    with pytest.raises(DataFormatError, match="zzz"):
        loaders.load_phenotype_file(path, phenotypes=["a", "zzz"])


def test_load_phenotype_rejects_duplicate_ids(tmp_path: Path) -> None:
    path = _write(tmp_path / "phenotypes.tsv", "id\ta\n1\t1\n1\t0\n")

    with pytest.raises(DataFormatError, match="duplicated"):
        loaders.load_phenotype_file(path)


def test_load_phenotype_reads_comma_separated(tmp_path: Path) -> None:
    path = _write(tmp_path / "phenotypes.csv", "id,a,b\n1,1,0\n2,0,\n")

    df = loaders.load_phenotype_file(path)

    assert list(df.columns) == ["a", "b"]
    assert np.isnan(df.loc["2", "b"])


def test_detect_separator_by_extension_and_content(tmp_path: Path) -> None:
    assert loaders.detect_separator(tmp_path / "x.tsv") == "\t"
    assert loaders.detect_separator(tmp_path / "x.csv") == ","
    assert loaders.detect_separator(tmp_path / "x.tsv.gz") == "\t"
    sniffed = _write(tmp_path / "table", "a,b,c\n1,2,3\n")
    assert loaders.detect_separator(sniffed) == ","


def test_summarize_consensus_counts_each_state() -> None:
    consensus = pd.DataFrame(
        {"is_consensus_h1": [1, 1, 0, 0, 1], "is_consensus_h2": [0, 1, 1, 0, 0]},
        index=pd.Index(list("abcde"), name="person_id"),
    )

    summary = loaders.summarize_consensus(consensus)

    assert summary.n_total == 5
    assert summary.n_h1_only == 2
    assert summary.n_h2_only == 1
    assert summary.n_ambiguous == 1
    assert summary.n_undetermined == 1
    assert summary.n_comparable == 4


def test_merge_cohort_inner_join_and_counts() -> None:
    consensus = pd.DataFrame(
        {"is_consensus_h1": [1, 0, 1], "is_consensus_h2": [0, 1, 0]},
        index=pd.Index(["3", "1", "2"], name="person_id"),
    )
    phenotypes = pd.DataFrame(
        {"a": [1.0, 0.0, np.nan]},
        index=pd.Index(["1", "2", "9"], name="person_id"),
    )

    merged, summary = loaders.merge_cohort(consensus, phenotypes)

    assert list(merged.index) == ["1", "2"]
    assert list(merged.columns) == ["is_consensus_h1", "is_consensus_h2", "a"]
    assert summary == {
        "n_consensus": 3,
        "n_phenotype": 3,
        "n_merged": 2,
        "n_consensus_only": 1,
        "n_phenotype_only": 1,
    }


def test_merge_cohort_empty_intersection_is_not_an_error() -> None:
    consensus = pd.DataFrame(
        {"is_consensus_h1": [1], "is_consensus_h2": [0]},
        index=pd.Index(["1"], name="person_id"),
    )
    phenotypes = pd.DataFrame({"a": [1.0]}, index=pd.Index(["2"], name="person_id"))

    merged, summary = loaders.merge_cohort(consensus, phenotypes)

    assert merged.empty
    assert summary["n_merged"] == 0
    assert loaders.phenotype_columns(merged) == ["a"]


def test_merge_cohort_rejects_reserved_phenotype_names() -> None:
    consensus = pd.DataFrame(
        {"is_consensus_h1": [1], "is_consensus_h2": [0]},
        index=pd.Index(["1"], name="person_id"),
    )
    phenotypes = pd.DataFrame({"haplotype": [1.0]}, index=pd.Index(["1"], name="person_id"))

    with pytest.raises(DataFormatError, match="reserved"):
        loaders.merge_cohort(consensus, phenotypes)


def test_tab_file_without_extension_keeps_comma_phenotype_names(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "phenotypes",
        "person_id\tDiabetes, type 2\tAsthma, adult, onset\n"
        "001\t1\t0\n"
        "002\t0\tNA\n",
    )

    assert loaders.detect_separator(path) == "\t"
    df = loaders.load_phenotype_file(path)

    assert list(df.columns) == ["Diabetes, type 2", "Asthma, adult, onset"]
    assert list(df.index) == ["001", "002"]
    assert df.loc["001", "Diabetes, type 2"] == 1.0
    assert np.isnan(df.loc["002", "Asthma, adult, onset"])
