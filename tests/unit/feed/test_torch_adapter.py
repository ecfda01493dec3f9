"""Unit tests for PyTorch sequence conversion."""

from __future__ import annotations

import builtins

import numpy as np
import pytest

from core.errors import SegFeedDependencyError
from feed.sequences import DenseSequence, SparseSequence
from feed.torch_adapter import sequence_to_tensor, stack_stream


def _sparse() -> SparseSequence:
    return SparseSequence(
        sample_id=0,
        indices=np.array([0, 2 * 2 + 1], dtype=np.int64),
        values=np.ones(2, dtype=np.float32),
        nnz_count=2,
        sample_layout=(2, 1, 3),
    )


def test_sequence_to_tensor_raises_without_torch(monkeypatch) -> None:
    """Tensor conversion should fail clearly when torch is missing."""
    original_import = builtins.__import__

    def _import(name, *args, **kwargs):
        if name == "torch":
            raise ImportError("torch missing")
        return original_import(name, *args, **kwargs)

    monkeypatch.setattr(builtins, "__import__", _import)

    with pytest.raises(SegFeedDependencyError):
        sequence_to_tensor(_sparse())


def test_sparse_sequence_converts_to_one_hot_tensor() -> None:
    """Sparse sequences should expand to (channels, height, width)."""
    torch = pytest.importorskip("torch")

    tensor = sequence_to_tensor(_sparse())

    assert tuple(tensor.shape) == (3, 1, 2)
    expected = torch.tensor([[[1.0, 0.0]], [[0.0, 0.0]], [[0.0, 1.0]]])
    assert torch.equal(tensor, expected)


def test_stack_stream_batches_dense_sequences() -> None:
    """Dense sequences should stack into (n, c, h, w)."""
    pytest.importorskip("torch")
    sequences = [
        DenseSequence(sample_id=i, data=np.arange(6, dtype=np.float32), sample_layout=(3, 2, 1))
        for i in range(2)
    ]

    batch = stack_stream(sequences)

    assert tuple(batch.shape) == (2, 1, 2, 3)
    assert float(batch[1, 0, 1, 2]) == 5.0
