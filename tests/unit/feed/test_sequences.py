"""Unit tests for sequence models."""

from __future__ import annotations

import numpy as np

from feed.sequences import DenseSequence, Sequences, SparseSequence, densify


def test_densify_expands_sparse_one_hot() -> None:
    """Sparse sequences should expand to channel-major one-hot values."""
    sparse = SparseSequence(
        sample_id=0,
        indices=np.array([2, 1 + 3], dtype=np.int64),
        values=np.ones(2, dtype=np.float32),
        nnz_count=2,
        sample_layout=(3, 1, 2),
    )

    dense = densify(sparse)

    np.testing.assert_array_equal(dense, [0, 0, 1, 0, 1, 0])


def test_densify_returns_dense_data_unchanged() -> None:
    """Dense sequences should be returned as-is."""
    data = np.arange(4, dtype=np.float32)
    dense = DenseSequence(sample_id=3, data=data, sample_layout=(2, 2, 1))

    assert densify(dense) is data
    assert dense.kind == "dense"


def test_sequences_sample_count_reads_first_stream() -> None:
    """Sample count should reflect the per-stream list length."""
    dense = DenseSequence(sample_id=0, data=np.zeros(1, dtype=np.float32), sample_layout=(1, 1, 1))

    assert Sequences(data=[[dense, dense]]).sample_count == 2
    assert Sequences(data=[]).sample_count == 0
