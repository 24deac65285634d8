"""Seeded random streams for reproducible simulations.

Every stochastic decision in DriveSim (coin flips, cut/repair draws, mate
search, shuffles, migration draws) is taken from an explicit RandomStream
that is passed to the operation. There is no module-level generator:
a fixed seed and a fixed traversal order give a fixed outcome.

Replicates get independent streams via NumPy's SeedSequence → PCG64
hierarchy, which guarantees:
  - Statistical independence between replicate streams
  - Bit-exact replay with the same master seed
  - Adding replicates doesn't change the streams of earlier ones
"""

from __future__ import annotations

from typing import Any, Dict, List, MutableSequence, Optional

import numpy as np


class RandomStream:
    """Uniform random source shared by all stochastic operations.

    Thin wrapper around a numpy Generator exposing only the draws the
    genetics engine needs, so tests can substitute a deterministic stub.
    """

    def __init__(self, generator: Optional[np.random.Generator] = None):
        if generator is None:
            generator = np.random.Generator(np.random.PCG64())
        self.generator = generator

    def uniform(self) -> float:
        """Float in [0, 1)."""
        return float(self.generator.random())

    def coin(self) -> bool:
        """True with probability 0.5."""
        return self.integer(2) != 0

    def integer(self, n: int) -> int:
        """Integer in [0, n)."""
        return int(self.generator.integers(0, n))

    def shuffle(self, items: MutableSequence[Any]) -> None:
        """In-place Fisher-Yates shuffle (uniform over permutations)."""
        for i in range(len(items) - 1, 0, -1):
            j = self.integer(i + 1)
            items[i], items[j] = items[j], items[i]

    @property
    def state(self) -> Dict[str, Any]:
        """Bit-generator state, suitable for pickling."""
        return self.generator.bit_generator.state

    def restore(self, state: Dict[str, Any]) -> None:
        """Restore a state captured with ``state``."""
        self.generator.bit_generator.state = state


def make_stream(seed: Optional[int] = None) -> RandomStream:
    """Create a PCG64-backed stream. ``seed=None`` draws OS entropy."""
    return RandomStream(np.random.Generator(np.random.PCG64(seed)))


def create_replicate_streams(
    master_seed: int,
    n_replicates: int,
) -> List[RandomStream]:
    """Create one independent stream per replicate (iteration).

    Args:
        master_seed: Master RNG seed (non-negative integer).
        n_replicates: Number of replicates.

    Returns:
        List of RandomStream, index i belonging to replicate i.

    Example:
        >>> streams = create_replicate_streams(42, 10)
        >>> streams[0].uniform()  # reproducible
    """
    ss = np.random.SeedSequence(master_seed)
    return [
        RandomStream(np.random.Generator(np.random.PCG64(child)))
        for child in ss.spawn(n_replicates)
    ]


def stream_state_snapshot(streams: List[RandomStream]) -> List[Dict[str, Any]]:
    """Capture the state of every replicate stream for checkpointing."""
    return [s.state for s in streams]


def restore_stream_state(
    streams: List[RandomStream],
    states: List[Dict[str, Any]],
) -> None:
    """Restore replicate streams from ``stream_state_snapshot`` output.

    Raises:
        ValueError: If the number of states doesn't match the streams.
    """
    if len(states) != len(streams):
        raise ValueError(
            f"Cannot restore {len(states)} states into {len(streams)} streams"
        )
    for stream, state in zip(streams, states):
        stream.restore(state)
