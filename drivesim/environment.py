"""Multi-population environment with symmetric pairwise migration.

Populations are indexed 0..n-1. A migration rate is stored once per
unordered pair under its canonical (i < j) key and applies to every adult
of both populations, each generation, independently.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from drivesim.config import SimulationConfig
from drivesim.errors import ConfigurationError
from drivesim.fertility import FertilityRules
from drivesim.population import (
    Population,
    empty_population,
    setup_population,
    wild_type_population,
)
from drivesim.rng import RandomStream
from drivesim.templates import OrganismFactory

logger = logging.getLogger(__name__)

PairKey = Tuple[int, int]


class Environment:
    """Ordered populations plus a symmetric migration-rate table."""

    def __init__(self, populations: List[Population], rng: RandomStream):
        self.populations = list(populations)
        self.rng = rng
        self._rates: Dict[PairKey, float] = {}

    def __len__(self) -> int:
        return len(self.populations)

    def __getitem__(self, index: int) -> Population:
        return self.populations[index]

    def _pair_key(self, i: int, j: int) -> PairKey:
        n = len(self.populations)
        for idx in (i, j):
            if not (0 <= idx < n):
                raise ConfigurationError(
                    f"Population index {idx} out of range [0, {n})"
                )
        if i == j:
            raise ConfigurationError(f"Cannot link population {i} to itself")
        return (i, j) if i < j else (j, i)

    @property
    def migration_pairs(self) -> List[PairKey]:
        return sorted(self._rates)

    def define_migration(self, i: int, j: int, rate: float) -> None:
        """Set the per-individual migration probability between i and j.

        Raises:
            ConfigurationError: On bad indices or a rate outside [0, 1].
        """
        key = self._pair_key(i, j)
        if not (0.0 <= rate <= 1.0):
            raise ConfigurationError(
                f"Migration rate between {i} and {j} must be in [0, 1], got {rate}"
            )
        self._rates[key] = float(rate)

    def migration_rate(self, i: int, j: int) -> float:
        """Rate for the unordered pair (0.0 if never defined)."""
        return self._rates.get(self._pair_key(i, j), 0.0)

    def total_adults(self) -> int:
        return sum(p.n_adults for p in self.populations)

    # ── Migration ────────────────────────────────────────────────────

    def _emigrants(self, source: Population, rate: float) -> Population:
        """Remove adults from ``source`` with probability ``rate`` each."""
        staying = []
        leaving = empty_population(
            source.capacity, source.rng, source.drive, source.fertility_rules,
        )
        for organism in source.adults:
            if self.rng.uniform() < rate:
                leaving.adults.append(organism)
            else:
                staying.append(organism)
        source.adults = staying
        return leaving

    def single_migration(self, i: int, j: int) -> Tuple[int, int]:
        """One exchange between populations i and j.

        Both populations are scanned before either receives migrants, so
        an organism moves at most once per call.

        Returns:
            (migrants i → j, migrants j → i) for the canonical i < j.
        """
        i, j = self._pair_key(i, j)
        rate = self._rates.get((i, j), 0.0)
        forward = self._emigrants(self.populations[i], rate)
        reverse = self._emigrants(self.populations[j], rate)
        self.populations[j].add_to_population(forward)
        self.populations[i].add_to_population(reverse)
        logger.debug(
            "Migration %d <-> %d (rate %.3f): %d forward, %d reverse",
            i, j, rate, forward.n_adults, reverse.n_adults,
        )
        return forward.n_adults, reverse.n_adults

    def migrate_all(self) -> Dict[PairKey, Tuple[int, int]]:
        """Run single_migration for every pair with a nonzero rate."""
        moved = {}
        for key in self.migration_pairs:
            if self._rates[key] > 0:
                moved[key] = self.single_migration(*key)
        return moved


def build_environment(
    config: SimulationConfig,
    factory: OrganismFactory,
    rng: RandomStream,
) -> Environment:
    """Populations and migration links described by ``config``.

    Each population starts from the named setup if one is configured,
    otherwise from a wild-type cohort of ``population.initial_size``.
    """
    pop_cfg = config.population
    rules = FertilityRules(list(config.fertility))
    populations: List[Population] = []
    for _ in range(pop_cfg.n_populations):
        if pop_cfg.setup is not None:
            pop = setup_population(
                factory, pop_cfg.setup, pop_cfg.capacity, rng, config.drive, rules,
            )
        else:
            pop = wild_type_population(
                factory, pop_cfg.initial_size, pop_cfg.capacity, rng, config.drive, rules,
            )
        populations.append(pop)

    env = Environment(populations, rng)
    for link in config.migration:
        env.define_migration(link.source, link.dest, link.rate)
    return env


def population_sizes(env: Environment, which: Optional[List[int]] = None) -> List[int]:
    """Adult counts of the given (default: all) populations."""
    indices = range(len(env)) if which is None else which
    return [env[i].n_adults for i in indices]
