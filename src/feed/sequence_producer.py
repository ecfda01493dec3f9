"""Conversion of dataset examples into stream sequences.

This module serves minibatch requests: it pulls one example per sample
from the source and packages each declared blob as a dense sequence, or
as a sparse one-hot sequence over the class channel axis with an optional
dense ignore mask.
"""

from __future__ import annotations

import numpy as np

from core.constants import (
    BLOB_DTYPE,
    IGNORE_KEEP_VALUE,
    IGNORE_MASK_VALUE,
    SPARSE_INDEX_DTYPE,
    SPARSE_NONZERO_VALUE,
)
from core.errors import SegFeedContractError, SegFeedSequenceError
from core.logging_config import get_logger
from core.types import IgnoreSpec
from dataset.example_buffer import ExampleBuffer
from dataset.example_source import ExampleSource
from feed.epoch_planner import EpochPlanner
from feed.sequences import DenseSequence, Sequence, Sequences, SparseSequence
from feed.stream_contracts import StreamContract, StreamTable, reversed_layout

_LOGGER = get_logger(__name__)


class SequenceProducer:
    """Fill per-stream sequence lists for each minibatch request."""

    def __init__(
        self,
        source: ExampleSource,
        example: ExampleBuffer,
        table: StreamTable,
        planner: EpochPlanner,
    ) -> None:
        """Create producer over an already-fetched example buffer.

        Args:
            source: Example source advanced after each sample.
            example: Buffer holding the next example to package.
            table: Derived stream table.
            planner: Epoch planner owning the sample accounting.
        """
        self._source = source
        self._example = example
        self._table = table
        self._planner = planner

    def get_next_sequences(self, requested_total: int) -> Sequences:
        """Produce this worker's sequences for one minibatch request.

        Args:
            requested_total: Global minibatch sample count.

        Returns:
            Per-stream, per-sample sequences and the end-of-epoch flag.

        Raises:
            SegFeedEpochError: If the request violates epoch accounting.
            SegFeedContractError: If declarations and streams disagree.
            SegFeedSequenceError: If a class value is out of range.
        """
        sample_count, end_of_epoch = self._planner.reserve_samples(requested_total)
        stream_count = len(self._table.input_streams)
        data: list[list[Sequence]] = [[] for _ in range(stream_count)]
        for sample_id in range(sample_count):
            for contract in self._table.contracts:
                self._package_stream(contract, sample_id, data)
            self._source.fetch_next_example(self._example)
        self._planner.commit(sample_count)
        _LOGGER.debug(
            "minibatch_served",
            requested_total=requested_total,
            sample_count=sample_count,
            end_of_epoch=end_of_epoch,
            current_sample_count=self._planner.state.current_sample_count,
        )
        return Sequences(data=data, end_of_epoch=end_of_epoch)

    def _package_stream(
        self,
        contract: StreamContract,
        sample_id: int,
        data: list[list[Sequence]],
    ) -> None:
        declaration = contract.declaration
        stream = self._table.input_streams[contract.stream_index]
        if stream.storage == "dense":
            if declaration.ignore is not None:
                raise SegFeedContractError(
                    f"Dense stream '{declaration.name}' cannot have an ignore label."
                )
            dense = self._take_dense(declaration.dataset_name, sample_id)
            data[contract.stream_index].append(dense)
            return
        ignore_mask = None
        if declaration.ignore is not None:
            ignore_index = contract.ignore_index
            if ignore_index is None or ignore_index >= len(self._table.input_streams):
                raise SegFeedContractError(
                    "Invalid number of input streams (sparse stream "
                    f"'{declaration.name}' is not followed by ignore stream)."
                )
            ignore_layout = self._table.input_streams[ignore_index].sample_layout
            ignore_mask = DenseSequence(
                sample_id=sample_id,
                data=np.full(int(np.prod(ignore_layout)), IGNORE_KEEP_VALUE, dtype=BLOB_DTYPE),
                sample_layout=ignore_layout,
            )
            data[ignore_index].append(ignore_mask)
        classes = self._example.take_blob(declaration.dataset_name)
        data[contract.stream_index].append(
            encode_sparse_classes(
                classes,
                stream.sample_layout,
                sample_id,
                declaration.ignore,
                None if ignore_mask is None else ignore_mask.data,
            )
        )

    def _take_dense(self, blob_name: str, sample_id: int) -> DenseSequence:
        # Layout notation changes, memory order does not.
        layout = reversed_layout(self._example.blob_shape(blob_name))
        return DenseSequence(
            sample_id=sample_id,
            data=self._example.take_blob(blob_name),
            sample_layout=layout,
        )


def encode_sparse_classes(
    classes: np.ndarray,
    sample_layout: tuple[int, int, int],
    sample_id: int,
    ignore: IgnoreSpec | None = None,
    ignore_mask: np.ndarray | None = None,
) -> SparseSequence:
    """Encode a per-position class map as a channel-major one-hot sequence.

    Position ``p`` holding class ``c`` maps to flat index
    ``c * spatial_size + p``. Positions holding the ignore label get a zero
    in ``ignore_mask`` and the placeholder index ``p`` (class 0).

    Args:
        classes: Flat class values, one per spatial position.
        sample_layout: (width, height, channel count) of the dense sample.
        sample_id: Index of the sample inside its minibatch request.
        ignore: Optional ignore declaration.
        ignore_mask: Flat mask updated in place for ignored positions.

    Returns:
        Sparse sequence with one non-zero per position.

    Raises:
        SegFeedContractError: If the class map size differs from the
            spatial size of the layout.
        SegFeedSequenceError: If a class value is outside [0, channels).
    """
    width, height, channels = sample_layout
    spatial_size = width * height
    if classes.size != spatial_size:
        raise SegFeedContractError(
            f"Unexpected sparse data count {classes.size}, expected {spatial_size}."
        )
    class_ids = classes.reshape(-1).astype(np.int64)
    positions = np.arange(spatial_size, dtype=SPARSE_INDEX_DTYPE)
    ignored = np.zeros(spatial_size, dtype=bool)
    if ignore is not None and ignore_mask is not None:
        ignored = class_ids == ignore.label
        ignore_mask[ignored] = IGNORE_MASK_VALUE
    out_of_range = ~ignored & ((class_ids < 0) | (class_ids >= channels))
    if out_of_range.any():
        position = int(np.flatnonzero(out_of_range)[0])
        raise SegFeedSequenceError(
            f"Invalid channel value {int(class_ids[position])} at position {position} in "
            f"sparse input stream (channels={channels})."
        )
    indices = np.where(ignored, positions, class_ids * spatial_size + positions)
    return SparseSequence(
        sample_id=sample_id,
        indices=indices.astype(SPARSE_INDEX_DTYPE, copy=False),
        values=np.full(spatial_size, SPARSE_NONZERO_VALUE, dtype=BLOB_DTYPE),
        nnz_count=spatial_size,
        sample_layout=sample_layout,
    )
