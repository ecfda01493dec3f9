"""Shared typed models.

This module defines the data models shared by the config layer, the
stream contract table, the epoch planner and the sequence producer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from core.constants import ELEMENT_TYPE_NAME, FULL_DATASET_EPOCH

StorageKind = Literal["dense", "sparse"]
SampleLayout = tuple[int, int, int]


@dataclass(frozen=True)
class IgnoreSpec:
    """Companion ignore-mask declaration for a sparse stream.

    Attributes:
        stream_name: Name of the derived dense mask stream.
        label: Class value whose positions are masked out.
    """

    stream_name: str
    label: int


@dataclass(frozen=True)
class StreamDeclaration:
    """One configured stream mapped onto a dataset blob.

    Attributes:
        name: Stream name exposed to the packer.
        dataset_name: Name of the blob inside the dataset examples.
        storage: Storage kind of the blob as read from the dataset.
        dimension: Channel count of the one-hot expansion (sparse only).
        ignore: Optional ignore-mask companion declaration.
    """

    name: str
    dataset_name: str
    storage: StorageKind
    dimension: int = 0
    ignore: IgnoreSpec | None = None


@dataclass(frozen=True)
class StreamDescription:
    """Shape and storage metadata of one input or output stream.

    Attributes:
        id: Zero-based stream index.
        name: Stream name.
        storage: Storage kind of sequences in this stream.
        sample_layout: Three-axis layout, fastest-varying axis first.
        element_type: Element type name of stream values.
    """

    id: int
    name: str
    storage: StorageKind
    sample_layout: SampleLayout
    element_type: str = ELEMENT_TYPE_NAME


@dataclass(frozen=True)
class EpochConfiguration:
    """Parameters supplied by the training loop when an epoch starts.

    Attributes:
        worker_rank: Zero-based rank of this worker.
        worker_count: Number of cooperating workers.
        minibatch_size: Global minibatch size in samples.
        total_epoch_samples: Samples in the epoch over all workers, or
            FULL_DATASET_EPOCH to use the whole dataset.
    """

    worker_rank: int
    worker_count: int
    minibatch_size: int
    total_epoch_samples: int = FULL_DATASET_EPOCH


@dataclass(frozen=True)
class ReaderConfiguration:
    """Mid-epoch configuration used for consistency checks."""

    worker_rank: int
    worker_count: int
    minibatch_size: int


@dataclass
class EpochState:
    """Mutable per-epoch accounting for one worker.

    Attributes:
        epoch_size: Samples this worker must produce in the epoch.
        current_sample_count: Samples produced so far.
        minibatch_size: Global minibatch size recorded at epoch start.
        worker_rank: Zero-based rank of this worker.
        worker_count: Number of cooperating workers.
        append_last_minibatch: Whether the next-to-last minibatch absorbs
            the final leftover sample.
    """

    worker_rank: int
    worker_count: int
    epoch_size: int = 0
    current_sample_count: int = 0
    minibatch_size: int = 0
    append_last_minibatch: bool = False

    @property
    def remaining_samples(self) -> int:
        """Samples left before the epoch is fully consumed."""
        return self.epoch_size - self.current_sample_count

    @property
    def is_consumed(self) -> bool:
        """Whether every planned sample of the epoch has been produced."""
        return self.current_sample_count == self.epoch_size
