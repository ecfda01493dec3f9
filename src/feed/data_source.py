"""Image dataset feed facade.

This module wires the reader config, example source, example buffer,
stream table, epoch planner and sequence producer into the object the
packer and training loop talk to.
"""

from __future__ import annotations

from typing import Iterator

from core.config import FeedConfig
from core.errors import SegFeedConfigError
from core.logging_config import get_logger
from core.types import EpochConfiguration, EpochState, ReaderConfiguration, StreamDescription
from dataset.example_buffer import ExampleBuffer
from dataset.example_source import (
    ExampleSource,
    NpzExampleSource,
    list_blob_names,
    parse_ids_files,
    read_example_ids,
)
from feed.epoch_planner import EpochPlanner
from feed.sequence_producer import SequenceProducer
from feed.sequences import Sequences
from feed.stream_contracts import StreamTable, derive_stream_table

_LOGGER = get_logger(__name__)


class ImageDatasetFeed:
    """Epoch-aware sequence feed over one worker's share of a dataset."""

    def __init__(self, config: FeedConfig, source: ExampleSource | None = None) -> None:
        """Create the feed and read stream shapes from the first example.

        Args:
            config: Validated reader config.
            source: Optional example source; built from ``config`` when
                omitted.

        Raises:
            SegFeedConfigError: If no source can be built or no streams
                are declared.
            SegFeedContractError: If declarations disagree with the blobs.
        """
        self._config = config
        self._source = source if source is not None else build_example_source(config)
        blob_names = list_blob_names(self._source)
        self._example = ExampleBuffer(blob_names)
        self._source.fetch_next_example(self._example)
        self._table = derive_stream_table(config.streams, blob_names, self._example)
        self._planner = EpochPlanner(
            worker_rank=config.worker_rank,
            worker_count=config.worker_count,
            full_traversal_per_worker=config.full_traversal_per_worker,
        )
        self._producer = SequenceProducer(self._source, self._example, self._table, self._planner)
        _LOGGER.info(
            "feed_initialized",
            worker_rank=config.worker_rank,
            worker_count=config.worker_count,
            full_traversal_per_worker=config.full_traversal_per_worker,
            example_count=self._source.example_count(),
            stream_count=len(self._table.input_streams),
        )

    @property
    def stream_table(self) -> StreamTable:
        return self._table

    @property
    def epoch_state(self) -> EpochState:
        return self._planner.state

    def stream_descriptions(self) -> list[StreamDescription]:
        """Return input stream descriptions, as consumed by the packer."""
        return list(self._table.input_streams)

    def output_stream_descriptions(self) -> list[StreamDescription]:
        """Return output stream descriptions; storage is always dense."""
        return list(self._table.output_streams)

    def start_epoch(self, config: EpochConfiguration) -> EpochState:
        """Plan this worker's share of a new epoch."""
        return self._planner.start_epoch(config, self._source.example_count())

    def set_configuration(self, config: ReaderConfiguration) -> None:
        """Check that worker identity and minibatch size are unchanged."""
        self._planner.set_configuration(config)

    def get_next_sequences(self, requested_total: int) -> Sequences:
        """Produce sequences for one minibatch request."""
        return self._producer.get_next_sequences(requested_total)

    def iter_epoch(self, minibatch_size: int) -> Iterator[Sequences]:
        """Yield minibatch results until the current epoch is drained.

        Args:
            minibatch_size: Global minibatch size used at epoch start.

        Yields:
            One ``Sequences`` result per minibatch request.
        """
        while True:
            sequences = self.get_next_sequences(minibatch_size)
            yield sequences
            if sequences.end_of_epoch:
                return


def build_example_source(config: FeedConfig) -> NpzExampleSource:
    """Build the directory-backed example source described by config.

    With ``full_traversal_per_worker`` the source is not sharded, so every
    worker reads the whole dataset.

    Raises:
        SegFeedConfigError: If ``dataset_dir`` is not configured.
    """
    if config.dataset_dir is None:
        raise SegFeedConfigError(
            "Reader config has no 'dataset_dir'. Set it or pass an example source explicitly."
        )
    example_ids = None
    if config.ids_files is not None:
        example_ids = read_example_ids(parse_ids_files(config.ids_files), config.dataset_dir)
    if config.full_traversal_per_worker:
        return NpzExampleSource(config.dataset_dir, example_ids)
    return NpzExampleSource(
        config.dataset_dir,
        example_ids,
        loader_index=config.worker_rank,
        loaders_count=config.worker_count,
    )
