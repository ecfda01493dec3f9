"""Example sources feeding the sequence producer.

This module defines the blocking pull interface the feed consumes and two
implementations: an in-memory source for tests and tooling, and a source
reading one ``.npz`` archive per example from a dataset directory. Both
sources wrap around at the end so callers can run any number of epochs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Protocol, Sequence

import numpy as np

from core.constants import (
    BLOB_DTYPE,
    EXAMPLE_FILE_SUFFIX,
    IDS_FILE_COMMENT_PREFIX,
    IDS_FILE_SEPARATOR,
)
from core.errors import SegFeedSourceError
from core.logging_config import get_logger
from dataset.example_buffer import ExampleBuffer

_LOGGER = get_logger(__name__)


class ExampleSource(Protocol):
    """Blocking pull interface over decoded dataset examples."""

    def blob_count(self) -> int:
        """Number of named blobs in every example."""

    def blob_name(self, index: int) -> str:
        """Name of blob ``index``."""

    def example_count(self) -> int:
        """Number of examples in the full dataset."""

    def fetch_next_example(self, buffer: ExampleBuffer) -> None:
        """Overwrite ``buffer`` with the next example and advance."""


def list_blob_names(source: ExampleSource) -> list[str]:
    """Collect blob names of a source in index order."""
    return [source.blob_name(index) for index in range(source.blob_count())]


class InMemoryExampleSource:
    """Example source over a list of ``{blob_name: (c, h, w) array}`` rows."""

    def __init__(
        self,
        examples: Sequence[Mapping[str, np.ndarray]],
        blob_names: Sequence[str] | None = None,
    ) -> None:
        if len(examples) == 0:
            raise SegFeedSourceError("In-memory example source needs at least one example.")
        self._examples = list(examples)
        self._blob_names = list(blob_names) if blob_names is not None else list(examples[0])
        for example_index, example in enumerate(self._examples):
            missing = [name for name in self._blob_names if name not in example]
            if missing:
                raise SegFeedSourceError(
                    f"Example #{example_index} is missing blobs: {', '.join(missing)}."
                )
        self._cursor = 0

    def blob_count(self) -> int:
        return len(self._blob_names)

    def blob_name(self, index: int) -> str:
        return self._blob_names[index]

    def example_count(self) -> int:
        return len(self._examples)

    def fetch_next_example(self, buffer: ExampleBuffer) -> None:
        example = self._examples[self._cursor]
        for index, name in enumerate(self._blob_names):
            buffer.set_blob(index, np.asarray(example[name], dtype=BLOB_DTYPE))
        self._cursor = (self._cursor + 1) % len(self._examples)


class NpzExampleSource:
    """Example source reading ``<dataset_dir>/<id>.npz`` archives.

    Each archive stores one array per blob, shaped (channels, height,
    width). Examples are sharded by ``loader_index`` modulo
    ``loaders_count`` over the ordered id list, so cooperating loaders read
    disjoint examples.
    """

    def __init__(
        self,
        dataset_dir: str,
        ids: Sequence[str] | None = None,
        loader_index: int = 0,
        loaders_count: int = 1,
    ) -> None:
        self._dataset_dir = Path(dataset_dir).expanduser().resolve()
        if not self._dataset_dir.is_dir():
            raise SegFeedSourceError(
                f"Dataset directory does not exist at {self._dataset_dir}."
            )
        all_ids = list(ids) if ids is not None else self._discover_ids()
        if not all_ids:
            raise SegFeedSourceError(f"No examples found in {self._dataset_dir}.")
        self._total_count = len(all_ids)
        self._ids = all_ids[loader_index::loaders_count]
        if not self._ids:
            raise SegFeedSourceError(
                f"Loader {loader_index} of {loaders_count} has no examples "
                f"({self._total_count} in dataset)."
            )
        self._blob_names = self._read_blob_names(self._ids[0])
        self._cursor = 0
        _LOGGER.info(
            "example_source_opened",
            dataset_dir=str(self._dataset_dir),
            total_examples=self._total_count,
            shard_examples=len(self._ids),
            loader_index=loader_index,
            loaders_count=loaders_count,
            blob_names=self._blob_names,
        )

    def blob_count(self) -> int:
        return len(self._blob_names)

    def blob_name(self, index: int) -> str:
        return self._blob_names[index]

    def example_count(self) -> int:
        return self._total_count

    def fetch_next_example(self, buffer: ExampleBuffer) -> None:
        example_id = self._ids[self._cursor]
        example_path = self._example_path(example_id)
        with np.load(example_path) as archive:
            for index, name in enumerate(self._blob_names):
                if name not in archive.files:
                    raise SegFeedSourceError(f"Example {example_path} has no blob '{name}'.")
                buffer.set_blob(index, archive[name].astype(BLOB_DTYPE, copy=False))
        self._cursor = (self._cursor + 1) % len(self._ids)

    def _discover_ids(self) -> list[str]:
        return sorted(
            path.stem
            for path in self._dataset_dir.iterdir()
            if path.is_file() and path.suffix == EXAMPLE_FILE_SUFFIX
        )

    def _read_blob_names(self, example_id: str) -> list[str]:
        with np.load(self._example_path(example_id)) as archive:
            return list(archive.files)

    def _example_path(self, example_id: str) -> Path:
        example_path = self._dataset_dir / f"{example_id}{EXAMPLE_FILE_SUFFIX}"
        if not example_path.is_file():
            raise SegFeedSourceError(f"Example file not found at {example_path}.")
        return example_path


def parse_ids_files(ids_files: str) -> list[str]:
    """Split a pipe-delimited ids-file list, dropping empty entries."""
    return [entry.strip() for entry in ids_files.split(IDS_FILE_SEPARATOR) if entry.strip()]


def read_example_ids(ids_file_paths: Sequence[str], base_dir: str | None = None) -> list[str]:
    """Read example ids from ids files in order.

    Args:
        ids_file_paths: Ids file paths; relative paths resolve against
            ``base_dir`` when given.
        base_dir: Optional base directory, usually the dataset directory.

    Returns:
        Concatenated ids, one per non-blank, non-comment line.

    Raises:
        SegFeedSourceError: If an ids file cannot be read.
    """
    example_ids: list[str] = []
    for raw_path in ids_file_paths:
        ids_path = Path(raw_path).expanduser()
        if not ids_path.is_absolute() and base_dir is not None:
            ids_path = Path(base_dir).expanduser() / ids_path
        try:
            lines = ids_path.read_text(encoding="utf-8").splitlines()
        except OSError as error:
            raise SegFeedSourceError(f"Failed to read ids file {ids_path}: {error}.") from error
        for line in lines:
            stripped = line.strip()
            if stripped and not stripped.startswith(IDS_FILE_COMMENT_PREFIX):
                example_ids.append(stripped)
    return example_ids
