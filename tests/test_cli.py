"""
Tests for the linkedexp command-line interface.

Runs ``main()`` in-process with real files in a temporary directory.
"""

import json

import pytest

from linkedexp.cli import main
from linkedexp.io.persistence import load

from conftest import write_text


@pytest.fixture
def snapshot(tmp_path, table_files):
    """Snapshot built from the shuffled synthetic tables."""
    output = tmp_path / "exp.lexp"
    status = main([
        "build",
        "--assay", str(table_files['counts']),
        "--row-annotation", str(table_files['genes']),
        "--column-annotation", str(table_files['samples']),
        "--output", str(output),
    ])
    assert status == 0
    return output


class TestBuild:

    def test_build_writes_valid_snapshot(self, snapshot):
        exp = load(snapshot)
        assert exp.shape == (20, 6)
        assert exp.row_annotation.index.equals(exp.row_keys)

    def test_build_with_presets_and_export(self, tmp_path, table_files, capsys):
        output = tmp_path / "exp.lexp"
        status = main([
            "build",
            "--assay", str(table_files['counts']),
            "--row-annotation", str(table_files['genes']),
            "--column-annotation", str(table_files['samples']),
            "--assay-format", "counts_tsv",
            "--row-format", "gene_annotation_tsv",
            "--column-format", "sample_annotation_csv",
            "--genomic-ranges",
            "--export-csv", str(tmp_path / "csv" / "exp"),
            "--output", str(output),
        ])

        assert status == 0
        assert 'width' in load(output).row_annotation.columns
        assert (tmp_path / "csv" / "exp.assay.csv").exists()
        assert "exp.columns.csv" in capsys.readouterr().out

    def test_alignment_error_exit_status(self, tmp_path, capsys):
        counts = write_text(tmp_path / "counts.csv", "gene,s1,s2\ng1,1,2\n")
        samples = write_text(tmp_path / "samples.csv", "sample,sex\ns1,F\ns3,M\n")
        output = tmp_path / "exp.lexp"

        status = main([
            "build", "--assay", str(counts), "--column-annotation", str(samples),
            "--output", str(output),
        ])

        assert status == 1
        err = capsys.readouterr().err
        assert "error: column keys do not match" in err
        assert "'s2'" in err and "'s3'" in err
        assert not output.exists()

    def test_malformed_input_exit_status(self, tmp_path, capsys):
        counts = write_text(tmp_path / "counts.csv", "gene,s1\ng1,abc\n")
        status = main(["build", "--assay", str(counts), "--output", str(tmp_path / "x.lexp")])

        assert status == 1
        assert "non-numeric" in capsys.readouterr().err

    def test_missing_input_is_usage_error(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["build", "--assay", str(tmp_path / "absent.csv"), "--output", "x.lexp"])
        assert exc_info.value.code == 2

    def test_unknown_preset_is_usage_error(self, table_files):
        with pytest.raises(SystemExit) as exc_info:
            main(["build", "--assay", str(table_files['counts']), "--assay-format", "xlsx"])
        assert exc_info.value.code == 2

    def test_required_arguments(self, table_files, capsys):
        status = main(["build", "--assay", str(table_files['counts'])])
        assert status == 2
        assert "--output is required" in capsys.readouterr().err


class TestBuildWithConfig:

    def test_config_supplies_everything(self, tmp_path, table_files):
        config = write_text(tmp_path / "build.yaml", f"""
assay:
  path: {table_files['counts']}
  format: counts_tsv
row_annotation:
  path: {table_files['genes']}
  format: gene_annotation_tsv
  dtype_overrides: {{type: category}}
column_annotation:
  path: {table_files['samples']}
output: {tmp_path / 'from_config.lexp'}
genomic_ranges: true
""")
        status = main(["build", "--config", str(config)])

        assert status == 0
        exp = load(tmp_path / "from_config.lexp")
        assert str(exp.row_annotation['type'].dtype) == 'category'
        assert 'width' in exp.row_annotation.columns

    def test_cli_overrides_config(self, tmp_path, table_files):
        config = write_text(tmp_path / "build.json", json.dumps({
            'assay': {'path': str(table_files['counts'])},
            'output': str(tmp_path / "from_config.lexp"),
        }))
        status = main([
            "build", "--config", str(config), "--output", str(tmp_path / "from_cli.lexp"),
        ])

        assert status == 0
        assert (tmp_path / "from_cli.lexp").exists()
        assert not (tmp_path / "from_config.lexp").exists()

    def test_invalid_config(self, tmp_path, table_files, capsys):
        config = write_text(tmp_path / "build.yaml", "assay:\n  format: xlsx\n")
        status = main(["build", "--config", str(config)])

        assert status == 2
        assert "Invalid format 'xlsx'" in capsys.readouterr().err


class TestInspect:

    def test_text_summary(self, snapshot, capsys):
        assert main(["inspect", str(snapshot)]) == 0
        out = capsys.readouterr().out
        assert "20 rows × 6 columns" in out
        assert "seqname" in out

    def test_json_summary(self, snapshot, capsys):
        assert main(["inspect", str(snapshot), "--json"]) == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary['n_rows'] == 20
        assert summary['n_columns'] == 6
        assert 'phenotype' in summary['column_annotation_columns']

    def test_corrupt_snapshot(self, tmp_path, capsys):
        path = tmp_path / "bad.lexp"
        path.write_bytes(b"not a snapshot")

        assert main(["inspect", str(path)]) == 1
        assert "not a linkedexp snapshot" in capsys.readouterr().err


class TestExport:

    def test_export(self, snapshot, tmp_path, capsys):
        prefix = tmp_path / "export" / "exp"
        assert main(["export", str(snapshot), "--output", str(prefix)]) == 0

        for suffix in ('.assay.csv', '.rows.csv', '.columns.csv'):
            assert (tmp_path / "export" / f"exp{suffix}").exists()


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "build" in capsys.readouterr().out


def test_version(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["--version"])
    assert exc_info.value.code == 0
    assert "linkedexp" in capsys.readouterr().out
