"""
Tests for CSV export and reload.
"""

import pandas as pd
import pytest

from linkedexp.io.loaders import load_experiment
from linkedexp.io.writers import write_annotation, write_csv_experiment


class TestWriteCsvExperiment:

    def test_writes_three_files(self, tmp_path, scenario_experiment):
        paths = write_csv_experiment(scenario_experiment, tmp_path / "out" / "exp")

        assert [p.name for p in paths] == ['exp.assay.csv', 'exp.rows.csv', 'exp.columns.csv']
        assert all(p.exists() for p in paths)

    def test_keys_first_in_container_order(self, tmp_path, scenario_experiment):
        assay_path, rows_path, _ = write_csv_experiment(scenario_experiment, tmp_path / "exp")

        assay = pd.read_csv(assay_path, index_col=0)
        assert list(assay.index) == ['GeneA', 'GeneB']
        assert assay.loc['GeneA'].tolist() == [10, 20]

        rows = pd.read_csv(rows_path, index_col=0)
        assert list(rows.index) == ['GeneA', 'GeneB']
        assert rows['type'].tolist() == ['mRNA', 'ncRNA']

    def test_reload_round_trip(self, tmp_path, small_experiment):
        assay, rows, columns = write_csv_experiment(small_experiment, tmp_path / "exp")

        reloaded = load_experiment(assay, rows, columns)

        assert reloaded.shape == small_experiment.shape
        assert list(reloaded.row_keys) == list(small_experiment.row_keys)
        assert list(reloaded.column_keys) == list(small_experiment.column_keys)
        assert (reloaded.assay == small_experiment.assay).all()
        assert reloaded.column_annotation['sex'].tolist() == \
            small_experiment.column_annotation['sex'].tolist()

    def test_empty_container(self, tmp_path, scenario_experiment):
        none = scenario_experiment.subset_rows([])
        assay_path, _, _ = write_csv_experiment(none, tmp_path / "empty")
        assert assay_path.read_text().strip() == ',S1,S2'

    def test_wrong_type(self, tmp_path):
        with pytest.raises(TypeError):
            write_csv_experiment("not an experiment", tmp_path / "x")


class TestWriteAnnotation:

    def test_column_annotation(self, tmp_path, scenario_experiment):
        path = write_annotation(scenario_experiment, tmp_path / "samples.csv")
        assert path.read_text().splitlines() == [',sex', 'S1,F', 'S2,M']

    def test_invalid_axis(self, tmp_path, scenario_experiment):
        with pytest.raises(ValueError, match="axis"):
            write_annotation(scenario_experiment, tmp_path / "x.csv", axis='depth')
