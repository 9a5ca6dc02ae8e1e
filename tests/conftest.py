"""
Pytest configuration and shared fixtures.

This module provides test data generators and shared fixtures for all test suites.
"""

import numpy as np
import pandas as pd
import pytest
from pathlib import Path

from linkedexp.core.experiment import LinkedExperiment


def generate_synthetic_tables(
    n_genes: int,
    n_samples: int,
    shuffle_annotations: bool = False,
    seed: int = 42
) -> tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """
    Generate a synthetic count matrix with gene and sample annotations.

    Args:
        n_genes: Number of genes (rows)
        n_samples: Number of samples (columns)
        shuffle_annotations: If True, store both annotations in a random order
            (same key sets, different order than the assay)
        seed: Random seed for reproducibility

    Returns:
        (counts, genes, samples) DataFrames

    Design:
        - Negative binomial counts (realistic for RNA-seq)
        - Genes carry seqname/start/end/strand so range tests can reuse them
        - Samples alternate CASE/CTRL with sex and batch columns
    """
    rng = np.random.RandomState(seed)

    gene_ids = [f"ENSG{i:011d}" for i in range(n_genes)]
    sample_ids = [f"S{i:03d}" for i in range(n_samples)]

    counts = pd.DataFrame(
        rng.negative_binomial(n=5, p=0.05, size=(n_genes, n_samples)),
        index=pd.Index(gene_ids, name='gene_id'),
        columns=sample_ids,
    )

    starts = rng.randint(1, 1_000_000, size=n_genes)
    genes = pd.DataFrame({
        'seqname': [f"chr{(i % 3) + 1}" for i in range(n_genes)],
        'start': starts,
        'end': starts + rng.randint(100, 5000, size=n_genes),
        'strand': ['+' if i % 2 == 0 else '-' for i in range(n_genes)],
        'type': ['mRNA' if i % 4 else 'ncRNA' for i in range(n_genes)],
    }, index=pd.Index(gene_ids, name='gene_id'))

    samples = pd.DataFrame({
        'phenotype': ['CASE' if i % 2 == 0 else 'CTRL' for i in range(n_samples)],
        'sex': ['F' if i % 3 else 'M' for i in range(n_samples)],
        'batch': [i % 5 for i in range(n_samples)],  # 5 batches
    }, index=pd.Index(sample_ids, name='sample_id'))

    if shuffle_annotations:
        genes = genes.iloc[rng.permutation(n_genes)]
        samples = samples.iloc[rng.permutation(n_samples)]

    return counts, genes, samples


def generate_synthetic_experiment(n_genes: int, n_samples: int, seed: int = 42) -> LinkedExperiment:
    """Synthetic tables built into a LinkedExperiment."""
    counts, genes, samples = generate_synthetic_tables(n_genes, n_samples, seed=seed)
    return LinkedExperiment.build(counts, genes, samples)


@pytest.fixture
def scenario_tables():
    """
    Two genes × two samples; the gene table is stored in reverse order.

    counts: GeneA=[10, 20], GeneB=[30, 40]
    genes:  stored as [GeneB, GeneA]; GeneA is mRNA, GeneB is ncRNA
    """
    counts = pd.DataFrame(
        [[10, 20], [30, 40]],
        index=['GeneA', 'GeneB'],
        columns=['S1', 'S2'],
    )
    genes = pd.DataFrame({'type': ['ncRNA', 'mRNA']}, index=['GeneB', 'GeneA'])
    samples = pd.DataFrame({'sex': ['F', 'M']}, index=['S1', 'S2'])
    return counts, genes, samples


@pytest.fixture
def scenario_experiment(scenario_tables):
    """Scenario tables built into a LinkedExperiment."""
    return LinkedExperiment.build(*scenario_tables)


@pytest.fixture
def small_experiment():
    """Small experiment (50 genes x 8 samples) for fast unit tests."""
    return generate_synthetic_experiment(n_genes=50, n_samples=8)


@pytest.fixture
def table_files(tmp_path):
    """
    Write synthetic tables to disk in the layouts real pipelines produce.

    Returns:
        Dictionary with paths: 'counts' (TSV), 'genes' (TSV), 'samples' (CSV).
        Annotations are stored in a shuffled order.
    """
    counts, genes, samples = generate_synthetic_tables(20, 6, shuffle_annotations=True)

    files = {
        'counts': tmp_path / "counts.tsv",
        'genes': tmp_path / "genes.tsv",
        'samples': tmp_path / "samples.csv",
    }
    counts.to_csv(files['counts'], sep='\t')
    genes.to_csv(files['genes'], sep='\t')
    samples.to_csv(files['samples'])
    return files


def write_text(path: Path, text: str) -> Path:
    """Write ``text`` to ``path`` and return the path."""
    path.write_text(text)
    return path
