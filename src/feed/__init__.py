"""Epoch-aware sequence feed.

This module plans each worker's share of an epoch and converts dataset
examples into dense and sparse sequences for the minibatch packer.
"""
