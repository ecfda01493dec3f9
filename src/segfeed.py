"""Public SDK surface for SegFeed.

This module provides a stable import path for feed users.
It re-exports the feed facade, config loading and typed models.
"""

from __future__ import annotations

from core.config import FeedConfig, load_feed_config
from core.constants import FULL_DATASET_EPOCH
from core.types import (
    EpochConfiguration,
    EpochState,
    IgnoreSpec,
    ReaderConfiguration,
    StreamDeclaration,
    StreamDescription,
)
from dataset.example_buffer import ExampleBuffer
from dataset.example_source import ExampleSource, InMemoryExampleSource, NpzExampleSource
from feed.data_source import ImageDatasetFeed, build_example_source
from feed.epoch_planner import EpochPlanner, plan_worker_share
from feed.sequences import DenseSequence, Sequences, SparseSequence, densify
from feed.torch_adapter import sequence_to_tensor, stack_stream

__all__ = [
    "DenseSequence",
    "EpochConfiguration",
    "EpochPlanner",
    "EpochState",
    "ExampleBuffer",
    "ExampleSource",
    "FULL_DATASET_EPOCH",
    "FeedConfig",
    "IgnoreSpec",
    "ImageDatasetFeed",
    "InMemoryExampleSource",
    "NpzExampleSource",
    "ReaderConfiguration",
    "Sequences",
    "SparseSequence",
    "StreamDeclaration",
    "StreamDescription",
    "build_example_source",
    "densify",
    "load_feed_config",
    "plan_worker_share",
    "sequence_to_tensor",
    "stack_stream",
]
