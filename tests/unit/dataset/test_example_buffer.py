"""Unit tests for the reusable example buffer."""

from __future__ import annotations

import numpy as np
import pytest

from core.errors import SegFeedConfigError, SegFeedContractError
from dataset.example_buffer import ExampleBuffer


def test_empty_blob_names_raise() -> None:
    """Buffers need at least one blob name."""
    with pytest.raises(SegFeedConfigError):
        ExampleBuffer([])


def test_reshape_blob_allocates_flat_memory() -> None:
    """Reshape should record the shape and size the blob memory."""
    buffer = ExampleBuffer(["image"])

    memory = buffer.reshape_blob(0, 3, 4, 5)

    assert memory.shape == (60,)
    assert memory.dtype == np.float32
    assert buffer.blob_shape("image") == (3, 4, 5)
    assert buffer.take_blob("image") is memory


def test_take_blob_moves_memory_and_leaves_empty_slot() -> None:
    """Taking a blob should hand over its array without copying."""
    buffer = ExampleBuffer(["image", "label"])
    original = buffer.reshape_blob(0, 1, 2, 3)
    original[:] = np.arange(6)

    taken = buffer.take_blob("image")

    assert taken is original
    np.testing.assert_array_equal(taken, np.arange(6))
    assert buffer.take_blob("image").size == 0
    assert buffer.blob_shape("image") == (1, 2, 3)


def test_unknown_blob_name_raises() -> None:
    """Lookups by unknown name should fail."""
    buffer = ExampleBuffer(["image"])

    with pytest.raises(SegFeedContractError, match="label not found"):
        buffer.take_blob("label")


def test_set_blob_rejects_non_three_axis_arrays() -> None:
    """Blobs must be (channels, height, width) arrays."""
    buffer = ExampleBuffer(["image"])

    with pytest.raises(SegFeedContractError, match="3 axes"):
        buffer.set_blob(0, np.zeros((4, 5), dtype=np.float32))
