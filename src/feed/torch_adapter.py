"""PyTorch conversion of emitted sequences.

This module turns dense and sparse sequences into torch tensors shaped
(channels, height, width), the order training code expects.
"""

from __future__ import annotations

from typing import Any, Sequence as TypingSequence

from core.errors import SegFeedDependencyError
from feed.sequences import Sequence, densify


def sequence_to_tensor(sequence: Sequence) -> Any:
    """Convert one sequence into a dense (c, h, w) float tensor.

    Args:
        sequence: Dense or sparse sequence.

    Returns:
        torch.Tensor; sparse sequences are expanded to one-hot channels.

    Raises:
        SegFeedDependencyError: If torch is unavailable.
    """
    torch_module = _import_torch()
    width, height, channels = sequence.sample_layout
    values = densify(sequence)
    return torch_module.from_numpy(values).reshape(channels, height, width)


def stack_stream(sequences: TypingSequence[Sequence]) -> Any:
    """Stack one stream's sequences into a (n, c, h, w) batch tensor."""
    torch_module = _import_torch()
    return torch_module.stack([sequence_to_tensor(sequence) for sequence in sequences])


def _import_torch() -> Any:
    try:
        import torch
    except ImportError as error:
        raise SegFeedDependencyError(
            "PyTorch tensor conversion requires torch, but it is not installed. "
            "Install torch to convert feed sequences."
        ) from error
    return torch
