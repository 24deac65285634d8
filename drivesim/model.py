"""Simulation runner: generations × replicates, parameter sweeps.

One generation, for every population in order:
  1. Intervention release (if the generation is inside the window)
  2. Statistics snapshot of the adults
  3. Reproduction into eggs (mate search, meiosis, germline drive)
  4. Egg-count row
  5. Density regulation (at most ``capacity`` eggs become adults)
  6. Zygotic drive activity of deposited Cas9/gRNA
then pairwise migration between populations.

Each replicate (iteration) owns an independent RandomStream spawned from
the master seed, so replicate k is reproducible on its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

from drivesim.config import SimulationConfig, override_config
from drivesim.environment import Environment, build_environment, population_sizes
from drivesim.population import Population, merge_populations, release_population
from drivesim.rng import create_replicate_streams
from drivesim.stats import StatRow, StatsWriter, SweepRow, egg_row, generation_rows
from drivesim.templates import OrganismFactory
from drivesim.types import Allele

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# RESULTS
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationResult:
    """Results of all replicates of one configuration."""
    n_iterations: int = 0
    n_generations: int = 0
    n_populations: int = 0
    seed: int = 0
    # Per iteration, generation, population: shape (n_iterations, n_generations, n_populations)
    adults: Optional[np.ndarray] = None     # at the statistics snapshot
    eggs: Optional[np.ndarray] = None       # before regulation
    # Per iteration, population after the last generation: (n_iterations, n_populations)
    final_adults: Optional[np.ndarray] = None
    final_drive_frequency: Optional[np.ndarray] = None
    rows: List[StatRow] = field(default_factory=list)

    def extinct(self) -> np.ndarray:
        """Boolean (n_iterations,) mask of replicates with no adults left."""
        return self.final_adults.sum(axis=1) == 0


def drive_allele_frequency(population: Population, gene: str) -> float:
    """Fraction of ``gene`` copies among the adults that carry the transgene."""
    n_copies = 0
    n_drive = 0
    for organism in population.adults:
        for locus in organism.iter_loci():
            if locus.gene_name == gene:
                n_copies += 1
                if locus.allele is Allele.TRANSGENE:
                    n_drive += 1
    if n_copies == 0:
        return 0.0
    return n_drive / n_copies


# ═══════════════════════════════════════════════════════════════════════
# ONE GENERATION
# ═══════════════════════════════════════════════════════════════════════

def _in_release_window(config: SimulationConfig, generation: int) -> bool:
    iv = config.intervention
    return iv.enabled and iv.start_generation <= generation <= iv.end_generation


def release(env: Environment, config: SimulationConfig, factory: OrganismFactory) -> None:
    """Merge one release cohort into the intervention's target population."""
    iv = config.intervention
    target = env.populations[iv.target_population]
    cohort = release_population(
        factory, iv.release_template, iv.release_size,
        target.capacity, env.rng, target.drive, target.fertility_rules,
    )
    env.populations[iv.target_population] = merge_populations(target, cohort)
    logger.info(
        "Released %d x %s into population %d",
        iv.release_size, iv.release_template, iv.target_population,
    )


def run_generation(
    env: Environment,
    generation: int,
    config: SimulationConfig,
    factory: OrganismFactory,
    rows: Optional[List[StatRow]] = None,
    iteration: int = 1,
) -> List[Tuple[int, int]]:
    """Advance every population of ``env`` by one generation.

    Args:
        env: Populations and migration links; modified in place.
        generation: 1-based generation number.
        config: Simulation configuration.
        factory: Builds release cohorts.
        rows: If given, statistics rows are appended to it.
        iteration: 1-based replicate number recorded in the rows.

    Returns:
        (adults at snapshot, eggs produced) per population.
    """
    pop_cfg = config.population
    if _in_release_window(config, generation):
        release(env, config, factory)

    counts = []
    for index, pop in enumerate(env.populations):
        if rows is not None:
            rows.extend(generation_rows(iteration, generation, index, pop, config))
        n_adults = pop.n_adults

        n_eggs = pop.reproduce_to_eggs(
            pop_cfg.mortality, pop_cfg.capacity, pop_cfg.eggs_per_female,
        )
        if rows is not None:
            rows.append(egg_row(iteration, generation, index, n_eggs))

        pop.regulate(pop_cfg.capacity)
        pop.parental_effect(config.drive.zygotic_hdr_reduction)
        counts.append((n_adults, n_eggs))

    env.migrate_all()
    return counts


# ═══════════════════════════════════════════════════════════════════════
# REPLICATES
# ═══════════════════════════════════════════════════════════════════════

def run_simulation(
    config: SimulationConfig,
    writer: Optional[StatsWriter] = None,
    collect_rows: bool = True,
    progress_callback: Optional[Callable[[int, int], Any]] = None,
) -> SimulationResult:
    """Run ``simulation.iterations`` replicates of ``simulation.generations``.

    Args:
        config: Validated configuration.
        writer: Open StatsWriter; rows are written after every generation.
        collect_rows: Keep statistics rows on the result. Sweeps turn
            this off together with the writer to skip statistics entirely.
        progress_callback: Called as ``callback(iteration, n_iterations)``.

    Returns:
        SimulationResult with per-generation counts for every replicate.
    """
    sim = config.simulation
    n_pops = config.population.n_populations
    factory = OrganismFactory(config.genome)
    drive_gene = config.drive.targets[0][0]
    want_rows = collect_rows or writer is not None

    result = SimulationResult(
        n_iterations=sim.iterations,
        n_generations=sim.generations,
        n_populations=n_pops,
        seed=sim.seed,
        adults=np.zeros((sim.iterations, sim.generations, n_pops), dtype=np.int64),
        eggs=np.zeros((sim.iterations, sim.generations, n_pops), dtype=np.int64),
        final_adults=np.zeros((sim.iterations, n_pops), dtype=np.int64),
        final_drive_frequency=np.zeros((sim.iterations, n_pops), dtype=np.float64),
    )

    streams = create_replicate_streams(sim.seed, sim.iterations)
    for it, rng in enumerate(streams):
        iteration = it + 1
        logger.info("Iteration %d out of %d", iteration, sim.iterations)
        if progress_callback is not None:
            progress_callback(iteration, sim.iterations)

        env = build_environment(config, factory, rng)
        extinct = [False] * n_pops
        for g in range(sim.generations):
            rows: Optional[List[StatRow]] = [] if want_rows else None
            counts = run_generation(env, g + 1, config, factory, rows, iteration)
            for p, (n_adults, n_eggs) in enumerate(counts):
                result.adults[it, g, p] = n_adults
                result.eggs[it, g, p] = n_eggs

            for p, n_left in enumerate(population_sizes(env)):
                if n_left == 0 and not extinct[p]:
                    extinct[p] = True
                    logger.info(
                        "Population %d extinct at generation %d (iteration %d)",
                        p, g + 1, iteration,
                    )

            if rows:
                if writer is not None:
                    writer.write_rows(rows)
                if collect_rows:
                    result.rows.extend(rows)

        for p, pop in enumerate(env.populations):
            result.final_adults[it, p] = pop.n_adults
            result.final_drive_frequency[it, p] = drive_allele_frequency(pop, drive_gene)

    return result


# ═══════════════════════════════════════════════════════════════════════
# PARAMETER SWEEP
# ═══════════════════════════════════════════════════════════════════════

def run_sweep(
    config: SimulationConfig,
    param1: str,
    values1: Sequence[Any],
    param2: str,
    values2: Sequence[Any],
    writer: Optional[StatsWriter] = None,
) -> List[SweepRow]:
    """Grid over two dotted config paths, recording the last-generation size.

    Every grid point reruns all replicates from the same master seed.
    The recorded size is the total adult count at the snapshot of the
    final generation.

    Example:
        >>> run_sweep(cfg, 'drive.zygotic_hdr_reduction', [0.9, 0.99],
        ...           'population.mortality', [0.0, 0.1])
    """
    sweep_rows: List[SweepRow] = []
    for value1 in values1:
        for value2 in values2:
            logger.info("%s = %s and %s = %s", param1, value1, param2, value2)
            point = override_config(config, {param1: value1, param2: value2})
            result = run_simulation(point, collect_rows=False)
            last = result.adults[:, -1, :].sum(axis=1)
            point_rows = [
                SweepRow(it + 1, value1, value2, int(n))
                for it, n in enumerate(last)
            ]
            if writer is not None:
                writer.write_rows(point_rows)
            sweep_rows.extend(point_rows)
    return sweep_rows
