"""Per-generation statistics rows and CSV output.

Each generation of each population is summarised as a set of rows:

  category  name      value     count  scope
  --------  --------  --------  -----  ------
  <gene>    <allele>  <allele>  n      all | sample   genotype counts
  Sex       Males     NA        n      all
  Sex       Females   NA        n      all
  Sex_Karyotype XX    NA        n      all
  Sex_Karyotype XY    NA        n      all
  Eggs      NA        NA        n      all            after reproduction

prefixed by (iteration, generation, population). Genotypes are reported
as the two alleles of a tracked gene, greater symbol first, so "WT,R1"
and "R1,WT" are the same class.
"""

from __future__ import annotations

import csv
import logging
from collections import Counter
from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple, Union

from drivesim.config import DriveSection, SimulationConfig
from drivesim.organism import Organism
from drivesim.population import Population

logger = logging.getLogger(__name__)

NA = "NA"
SCOPE_ALL = "all"
SCOPE_SAMPLE = "sample"

STAT_HEADER = (
    "iteration", "generation", "population",
    "category", "name", "value", "count", "scope",
)
SWEEP_HEADER = ("iteration", "value1", "value2", "n_adults")

KARYOTYPES = ("XX", "XY")


class StatRow(NamedTuple):
    iteration: int
    generation: int
    population: int
    category: str
    name: str
    value: str
    count: int
    scope: str


class SweepRow(NamedTuple):
    iteration: int
    value1: float
    value2: float
    n_adults: int


# ═══════════════════════════════════════════════════════════════════════
# COUNTS
# ═══════════════════════════════════════════════════════════════════════

def genotype_counts(
    adults: Iterable[Organism],
    genes: Sequence[str],
) -> Counter:
    """Count (gene, genotype) classes, in order of first appearance."""
    counts: Counter = Counter()
    for organism in adults:
        for gene in genes:
            counts[(gene, organism.genotype(gene))] += 1
    return counts


def sample_genotype_counts(
    adults: Sequence[Organism],
    genes: Sequence[str],
    sample_size: int,
) -> Counter:
    """Genotype counts over the first ``sample_size`` adults.

    Adults are kept in shuffled order, so the head of the list is a
    random sample.
    """
    return genotype_counts(adults[:sample_size], genes)


def sex_counts(adults: Iterable[Organism], drive: DriveSection) -> Tuple[int, int]:
    """(males, females) by phenotypic sex."""
    adults = list(adults)
    n_females = sum(1 for o in adults if o.is_female(drive))
    return len(adults) - n_females, n_females


def karyotype_counts(adults: Iterable[Organism]) -> Tuple[int, int]:
    """(XX, XY) by sex-chromosome karyotype; YX is counted as XY."""
    n_xx = 0
    n_xy = 0
    for organism in adults:
        karyo = organism.sex_chrom_karyotype()
        if karyo == "XX":
            n_xx += 1
        elif karyo in ("XY", "YX"):
            n_xy += 1
        else:
            logger.warning("Unexpected sex-chromosome karyotype '%s'", karyo)
    return n_xx, n_xy


# ═══════════════════════════════════════════════════════════════════════
# ROWS
# ═══════════════════════════════════════════════════════════════════════

def _genotype_rows(
    iteration: int,
    generation: int,
    population_index: int,
    counts: Counter,
    scope: str,
) -> List[StatRow]:
    rows = []
    for (gene, genotype), n in counts.items():
        first, _, second = genotype.partition(",")
        rows.append(StatRow(
            iteration, generation, population_index,
            gene, first, second, n, scope,
        ))
    return rows


def generation_rows(
    iteration: int,
    generation: int,
    population_index: int,
    population: Population,
    config: SimulationConfig,
) -> List[StatRow]:
    """Adult snapshot rows: genotypes (all and sample), sex, karyotype."""
    track = config.output.track
    adults = population.adults

    rows = _genotype_rows(
        iteration, generation, population_index,
        genotype_counts(adults, track), SCOPE_ALL,
    )
    rows += _genotype_rows(
        iteration, generation, population_index,
        sample_genotype_counts(adults, track, config.output.sample_size),
        SCOPE_SAMPLE,
    )

    n_males, n_females = sex_counts(adults, population.drive)
    rows.append(StatRow(iteration, generation, population_index,
                        "Sex", "Males", NA, n_males, SCOPE_ALL))
    rows.append(StatRow(iteration, generation, population_index,
                        "Sex", "Females", NA, n_females, SCOPE_ALL))

    n_xx, n_xy = karyotype_counts(adults)
    rows.append(StatRow(iteration, generation, population_index,
                        "Sex_Karyotype", "XX", NA, n_xx, SCOPE_ALL))
    rows.append(StatRow(iteration, generation, population_index,
                        "Sex_Karyotype", "XY", NA, n_xy, SCOPE_ALL))
    return rows


def egg_row(
    iteration: int,
    generation: int,
    population_index: int,
    n_eggs: int,
) -> StatRow:
    return StatRow(iteration, generation, population_index,
                   "Eggs", NA, NA, n_eggs, SCOPE_ALL)


# ═══════════════════════════════════════════════════════════════════════
# CSV OUTPUT
# ═══════════════════════════════════════════════════════════════════════

class StatsWriter:
    """CSV sink for StatRow / SweepRow tuples.

    Usage:
        with StatsWriter(path) as writer:
            writer.write_rows(rows)
    """

    def __init__(
        self,
        path: Union[str, Path],
        header: Optional[Sequence[str]] = STAT_HEADER,
    ):
        self.path = Path(path)
        self.header = header
        self.n_rows = 0
        self._file = None
        self._writer = None

    def open(self) -> "StatsWriter":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, 'w', newline='')
        self._writer = csv.writer(self._file)
        if self.header:
            self._writer.writerow(self.header)
        logger.info("Writing output to: %s", self.path)
        return self

    def write_rows(self, rows: Iterable[Sequence]) -> None:
        if self._writer is None:
            raise RuntimeError(f"StatsWriter for {self.path} is not open")
        for row in rows:
            self._writer.writerow(row)
            self.n_rows += 1

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self._writer = None

    def __enter__(self) -> "StatsWriter":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
