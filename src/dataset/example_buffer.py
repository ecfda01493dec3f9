"""Reusable buffer holding one decoded example.

Example sources overwrite the buffer in place on every fetch. The
sequence producer moves blob arrays out with ``take_blob`` so packaged
sequences own their memory without a copy.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from core.constants import BLOB_DIMS, BLOB_DTYPE
from core.errors import SegFeedConfigError, SegFeedContractError

BlobShape = tuple[int, int, int]


class ExampleBuffer:
    """Named float32 blobs of one example with their (c, h, w) shapes."""

    def __init__(self, blob_names: Sequence[str]) -> None:
        if len(blob_names) == 0:
            raise SegFeedConfigError("Empty blob names list provided to example buffer.")
        self._blob_names = tuple(blob_names)
        self._index_by_name = {name: index for index, name in enumerate(self._blob_names)}
        self._blobs = [np.empty(0, dtype=BLOB_DTYPE) for _ in self._blob_names]
        self._shapes: list[BlobShape] = [(0, 0, 0) for _ in self._blob_names]

    @property
    def blob_names(self) -> tuple[str, ...]:
        return self._blob_names

    def reshape_blob(self, index: int, channels: int, height: int, width: int) -> np.ndarray:
        """Record a blob shape and allocate flat memory for its values.

        Args:
            index: Blob index in ``blob_names`` order.
            channels: Slowest-varying axis.
            height: Middle axis.
            width: Fastest-varying axis.

        Returns:
            Writable flat array the source copies blob values into.
        """
        self._shapes[index] = (channels, height, width)
        self._blobs[index] = np.empty(channels * height * width, dtype=BLOB_DTYPE)
        return self._blobs[index]

    def set_blob(self, index: int, values: np.ndarray) -> None:
        """Store a three-axis array as blob ``index``."""
        if values.ndim != BLOB_DIMS:
            raise SegFeedContractError(
                f"Blob '{self._blob_names[index]}' must have {BLOB_DIMS} axes, got {values.ndim}."
            )
        channels, height, width = (int(axis) for axis in values.shape)
        target = self.reshape_blob(index, channels, height, width)
        target[:] = values.reshape(-1)

    def blob_shape(self, blob_name: str) -> BlobShape:
        """Return the dataset-native (c, h, w) shape of a named blob."""
        return self._shapes[self._index_of(blob_name)]

    def take_blob(self, blob_name: str) -> np.ndarray:
        """Move a blob's array out of the buffer.

        The slot is left holding an empty array until the next fetch
        overwrites it. The recorded shape is kept.
        """
        index = self._index_of(blob_name)
        taken = self._blobs[index]
        self._blobs[index] = np.empty(0, dtype=BLOB_DTYPE)
        return taken

    def _index_of(self, blob_name: str) -> int:
        index = self._index_by_name.get(blob_name)
        if index is None:
            raise SegFeedContractError(f"Blob with name {blob_name} not found.")
        return index
