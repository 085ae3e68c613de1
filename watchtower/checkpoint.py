# Copyright (c) Animica.
# SPDX-License-Identifier: MIT
"""
Checkpoint derivation for periodic reporting duties.

A checkpoint is the height that opens the reporting interval containing the
current head:

    checkpoint = (current_height // frequency) * frequency

Every node with the same frequency that observes the same head computes the
same checkpoint, which is how independent reporters converge on one block
without talking to each other.
"""

from __future__ import annotations

from watchtower.errors import ConfigurationError
from watchtower.types import Checkpoint


def reportable_checkpoint(current_height: int, frequency: int) -> Checkpoint:
    """Latest height-aligned checkpoint at or below `current_height`."""
    if isinstance(frequency, bool) or not isinstance(frequency, int) or frequency <= 0:
        raise ConfigurationError(
            "submission frequency must be a positive integer",
            details={"frequency": frequency},
        )
    if current_height < 0:
        raise ValueError("current_height must be non-negative")
    return (current_height // frequency) * frequency


def next_checkpoint(current_height: int, frequency: int) -> Checkpoint:
    """First checkpoint strictly after `current_height`."""
    return reportable_checkpoint(current_height, frequency) + frequency


__all__ = ["reportable_checkpoint", "next_checkpoint"]
