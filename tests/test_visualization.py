import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from hapwas.utils.data_types import AssociationResult, AssociationResults
from hapwas.visualization import phewas


def _results() -> AssociationResults:
    return AssociationResults(
        [
            AssociationResult("asthma", 10, 20, 15, 15, 60, 3.2, 0.23, 0.07),
            AssociationResult("gout", 5, 25, 18, 12, 60, 12.5, 0.46, 4e-4),
            AssociationResult("flat", 0, 0, 4, 6, 10),
        ],
        phenotype_order=["asthma", "gout", "flat"],
    )


def test_create_phewas_plot_with_threshold() -> None:
    fig = phewas.create_phewas_plot(_results().to_dataframe(), threshold=0.05, max_labels=1)

    assert isinstance(fig, matplotlib.figure.Figure)
    plt.close(fig)


def test_create_phewas_plot_without_valid_pvalues() -> None:
    df = pd.DataFrame({"Phenotype": ["a"], "P_Value": [np.nan]})

    fig = phewas.create_phewas_plot(df, threshold=None)

    texts = [t.get_text() for t in fig.axes[0].texts]
    assert any("No computable" in t for t in texts)
    plt.close(fig)


def test_create_phewas_plot_requires_columns() -> None:
    with pytest.raises(ValueError):
        phewas.create_phewas_plot(pd.DataFrame({"P": [0.1]}))


def test_create_qq_plot_ignores_missing() -> None:
    fig = phewas.create_qq_plot(np.array([0.5, np.nan, 0.01, 0.2]))
    assert isinstance(fig, matplotlib.figure.Figure)
    plt.close(fig)

    empty = phewas.create_qq_plot(np.array([np.nan]))
    assert any("No valid" in t.get_text() for t in empty.axes[0].texts)
    plt.close(empty)


def test_report_saves_requested_plots(tmp_path) -> None:
    prefix = str(tmp_path / "scan")

    report = phewas.HAPWAS_Report(_results(), output_prefix=prefix, dpi=50, verbose=False)

    assert report["files_created"] == [f"{prefix}_phewas.png", f"{prefix}_qq.png"]
    for filename in report["files_created"]:
        assert (tmp_path / filename).exists()


def test_report_subset_and_unknown(tmp_path) -> None:
    report = phewas.HAPWAS_Report(
        _results(), output_prefix=str(tmp_path / "x"), plot_types=["qq"], save_plots=False, verbose=False
    )
    assert list(report["plots"]) == ["qq"]
    assert report["files_created"] == []
    plt.close(report["plots"]["qq"])

    with pytest.raises(ValueError):
        phewas.HAPWAS_Report(_results(), plot_types=["manhattan"], verbose=False)


def test_report_accepts_dataframe_and_rejects_other(tmp_path) -> None:
    df = _results().to_dataframe()
    report = phewas.HAPWAS_Report(df, output_prefix=str(tmp_path / "df"), plot_types=["phewas"], dpi=50, verbose=False)
    assert len(report["files_created"]) == 1

    with pytest.raises(ValueError):
        phewas.HAPWAS_Report([1, 2, 3], verbose=False)
