"""Sequence models emitted by the feed.

A sequence is one sample's data for one stream. Dense and sparse
sequences are separate types tagged by ``kind``; consumers branch on the
tag. Every sequence owns its arrays and is emitted once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

import numpy as np

from core.constants import BLOB_DTYPE
from core.types import SampleLayout


@dataclass(frozen=True)
class DenseSequence:
    """Dense sample: flat float32 values laid out as ``sample_layout``.

    Attributes:
        sample_id: Index of the sample inside its minibatch request.
        data: Flat values, first layout axis varying fastest.
        sample_layout: Three-axis layout of the sample.
    """

    sample_id: int
    data: np.ndarray
    sample_layout: SampleLayout
    kind: Literal["dense"] = field(default="dense", init=False)


@dataclass(frozen=True)
class SparseSequence:
    """Sparse one-hot sample over the channel axis of ``sample_layout``.

    Attributes:
        sample_id: Index of the sample inside its minibatch request.
        indices: Flat indices into the dense sample, channel-major.
        values: Non-zero values, parallel to ``indices``.
        nnz_count: Number of non-zero entries.
        sample_layout: Dense layout the indices address.
    """

    sample_id: int
    indices: np.ndarray
    values: np.ndarray
    nnz_count: int
    sample_layout: SampleLayout
    kind: Literal["sparse"] = field(default="sparse", init=False)


Sequence = Union[DenseSequence, SparseSequence]


@dataclass
class Sequences:
    """Result of one minibatch request.

    Attributes:
        data: Per input stream, per sample sequences.
        end_of_epoch: Whether this request drained the worker's epoch.
    """

    data: list[list[Sequence]]
    end_of_epoch: bool = False

    @property
    def sample_count(self) -> int:
        return len(self.data[0]) if self.data else 0


def densify(sequence: Sequence) -> np.ndarray:
    """Expand a sequence into its flat dense values.

    Args:
        sequence: Dense or sparse sequence.

    Returns:
        Flat float32 array of ``prod(sample_layout)`` values.
    """
    if sequence.kind == "dense":
        return sequence.data
    width, height, channels = sequence.sample_layout
    dense = np.zeros(width * height * channels, dtype=BLOB_DTYPE)
    dense[sequence.indices] = sequence.values
    return dense
