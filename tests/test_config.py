"""
Tests for CLI configuration files: loading, validation and merging.
"""

from argparse import Namespace
from pathlib import Path

import pytest

from linkedexp.cli.config import (
    BuildConfig,
    TableConfig,
    load_config,
    merge_config_with_args,
    validate_config,
)
from linkedexp.core.ranges import RangeColumns

from conftest import write_text


def build_args(**overrides) -> Namespace:
    """Namespace as produced by ``linkedexp build`` with nothing set."""
    values = dict(
        config=None, assay=None, row_annotation=None, column_annotation=None,
        output=None, assay_format=None, row_format=None, column_format=None,
        genomic_ranges=None, export_csv=None,
    )
    values.update(overrides)
    return Namespace(**values)


class TestLoadConfig:

    def test_yaml(self, tmp_path):
        path = write_text(tmp_path / "c.yaml", "assay:\n  path: counts.tsv\n  format: counts_tsv\n")
        assert load_config(path) == {'assay': {'path': 'counts.tsv', 'format': 'counts_tsv'}}

    def test_json(self, tmp_path):
        path = write_text(tmp_path / "c.json", '{"output": "exp.lexp"}')
        assert load_config(path) == {'output': 'exp.lexp'}

    def test_empty_file(self, tmp_path):
        assert load_config(write_text(tmp_path / "c.yml", "")) == {}

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_unsupported_suffix(self, tmp_path):
        with pytest.raises(ValueError, match="Unsupported config format"):
            load_config(write_text(tmp_path / "c.toml", "x = 1"))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config(write_text(tmp_path / "c.yaml", "assay: [unclosed\n"))

    def test_top_level_must_be_mapping(self, tmp_path):
        with pytest.raises(ValueError, match="mapping"):
            load_config(write_text(tmp_path / "c.yaml", "- a\n- b\n"))


class TestValidateConfig:

    def test_valid(self):
        validate_config({
            'assay': {'path': 'counts.tsv', 'format': 'counts_tsv'},
            'row_annotation': {'dtype_overrides': {'entrez_id': 'str'}},
            'genomic_ranges': {'seqname': 'chrom'},
        })

    def test_unknown_top_level_key(self):
        with pytest.raises(ValueError, match="Unknown config keys"):
            validate_config({'assays': {}})

    def test_unknown_section_key(self):
        with pytest.raises(ValueError, match="Unknown keys in 'assay'"):
            validate_config({'assay': {'file': 'x'}})

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError, match="must be a mapping"):
            validate_config({'assay': 'counts.tsv'})

    def test_unknown_preset(self):
        with pytest.raises(ValueError, match="Invalid format"):
            validate_config({'row_annotation': {'format': 'gff'}})

    def test_invalid_dtype(self):
        with pytest.raises(ValueError, match="Invalid dtype"):
            validate_config({'row_annotation': {'dtype_overrides': {'x': 'nope'}}})

    def test_invalid_genomic_ranges(self):
        with pytest.raises(ValueError, match="genomic_ranges"):
            validate_config({'genomic_ranges': 'yes'})
        with pytest.raises(ValueError, match="Unknown genomic_ranges columns"):
            validate_config({'genomic_ranges': {'chromosome': 'chr'}})


class TestMerge:

    def test_config_fills_unset_args(self):
        merged = merge_config_with_args(
            {'assay': {'path': 'counts.tsv', 'format': 'counts_tsv'}, 'output': 'exp.lexp'},
            build_args(),
        )
        assert merged.assay == Path('counts.tsv')
        assert merged.assay_format == 'counts_tsv'
        assert merged.output == Path('exp.lexp')

    def test_cli_wins(self):
        merged = merge_config_with_args(
            {'output': 'config.lexp', 'genomic_ranges': False},
            build_args(output=Path('cli.lexp'), genomic_ranges=True),
        )
        assert merged.output == Path('cli.lexp')
        assert merged.genomic_ranges is True

    def test_original_namespace_untouched(self):
        args = build_args()
        merge_config_with_args({'output': 'exp.lexp'}, args)
        assert args.output is None


class TestBuildConfig:

    def test_from_args_with_overrides(self):
        config = {'row_annotation': {'format': 'gene_annotation_tsv',
                                     'dtype_overrides': {'biotype': 'category'}}}
        args = merge_config_with_args(config, build_args(assay=Path('c.tsv')))

        build = BuildConfig.from_args(args, config)
        fmt = build.row_annotation.table_format()

        assert fmt.delimiter == '\t'
        assert fmt.dtype_overrides['biotype'] == 'category'
        # Preset overrides are kept
        assert fmt.dtype_overrides['entrez_id'] == 'str'
        assert build.genomic_ranges is False

    def test_range_columns_mapping(self):
        build = BuildConfig.from_args(build_args(genomic_ranges={'seqname': 'chrom'}))
        assert build.genomic_ranges == RangeColumns(seqname='chrom')

    def test_table_without_format(self):
        assert TableConfig(path=Path('x.csv')).table_format() is None
