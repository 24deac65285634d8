"""Population dynamics: mate search, reproduction, density regulation.

A Population is one breeding unit with discrete, non-overlapping
generations:

  reproduce_to_eggs  every female searches for one mate; the adult
                     cohort is then cleared
  regulate           at most ``capacity`` eggs are promoted to adults
  parental_effect    deposited Cas9/gRNA act on the new adults' genomes

Builders at the bottom create wild-type cohorts, named releases and
setups, and merged populations.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterator, List, Optional

from drivesim.config import DriveSection
from drivesim.fertility import FertilityRules
from drivesim.organism import Organism
from drivesim.rng import RandomStream
from drivesim.templates import OrganismFactory
from drivesim.types import FEMALE, MALE

logger = logging.getLogger(__name__)


class Population:
    """Adult and egg cohorts of one breeding unit.

    ``eggs`` is empty except between reproduce_to_eggs() and regulate().
    """

    def __init__(
        self,
        capacity: int,
        rng: RandomStream,
        drive: Optional[DriveSection] = None,
        fertility_rules: Optional[FertilityRules] = None,
        adults: Optional[List[Organism]] = None,
    ):
        self.capacity = capacity
        self.rng = rng
        self.drive = drive if drive is not None else DriveSection()
        self.fertility_rules = fertility_rules if fertility_rules is not None else FertilityRules()
        self.adults: List[Organism] = list(adults) if adults else []
        self.eggs: List[Organism] = []

    # ── Queries ──────────────────────────────────────────────────────

    @property
    def n_adults(self) -> int:
        return len(self.adults)

    @property
    def n_eggs(self) -> int:
        return len(self.eggs)

    def __len__(self) -> int:
        return len(self.adults)

    def __iter__(self) -> Iterator[Organism]:
        return iter(self.adults)

    def count_sexes(self) -> Dict[str, int]:
        n_males = sum(1 for o in self.adults if o.is_male(self.drive))
        return {FEMALE: len(self.adults) - n_males, MALE: n_males}

    def __repr__(self) -> str:
        return (f"Population(adults={self.n_adults}, eggs={self.n_eggs}, "
                f"capacity={self.capacity})")

    # ── Reproduction ─────────────────────────────────────────────────

    def perform_cross(
        self,
        father: Organism,
        mother: Organism,
        eggs_per_female: int,
    ) -> List[Organism]:
        """Offspring of one mating; clutch size scaled by both fertilities."""
        n_eggs = int(
            eggs_per_female
            * father.fertility(self.fertility_rules, self.drive)
            * mother.fertility(self.fertility_rules, self.drive)
        )
        return [
            Organism.from_parents(father, mother, self.drive, self.rng)
            for _ in range(n_eggs)
        ]

    def reproduce_to_eggs(
        self,
        mortality: float,
        capacity: int,
        eggs_per_female: int,
    ) -> int:
        """Mate every female once, replace the adults by shuffled eggs.

        Each female draws up to floor((1 - mortality) * capacity) random
        adults and mates with the first male found. A male may be chosen
        by several females.

        Returns:
            Number of eggs produced.
        """
        self.rng.shuffle(self.adults)
        # Absorb float error: (1 - 0.9) * 1000 is 99.99999999999997
        search_budget = math.floor((1.0 - mortality) * capacity + 1e-9)

        n_adults = len(self.adults)
        sexes = [o.sex(self.drive) for o in self.adults]
        n_matings = 0
        for mother, sex in zip(self.adults, sexes):
            if sex != FEMALE:
                continue
            for _ in range(search_budget):
                k = self.rng.integer(n_adults)
                if sexes[k] == MALE:
                    self.eggs.extend(
                        self.perform_cross(self.adults[k], mother, eggs_per_female)
                    )
                    n_matings += 1
                    break

        logger.debug(
            "Reproduction: %d adults, %d matings, %d eggs",
            n_adults, n_matings, len(self.eggs),
        )
        self.adults.clear()
        self.rng.shuffle(self.eggs)
        return len(self.eggs)

    def regulate(self, capacity: Optional[int] = None) -> int:
        """Promote at most ``capacity`` eggs, in order, to adults; clear eggs.

        Returns:
            Number of eggs promoted.
        """
        if capacity is None:
            capacity = self.capacity
        n_promoted = min(len(self.eggs), capacity)
        self.adults.extend(self.eggs[:n_promoted])
        self.eggs.clear()
        return n_promoted

    def parental_effect(self, hdr_reduction: float) -> int:
        """Zygotic drive pass over all adults.

        Homolog sets are swapped with probability 0.5 first, so the order
        in which set A and set B are cut carries no parental bias.

        Returns:
            Number of zygotic cuts.
        """
        n_cuts = 0
        for organism in self.adults:
            if self.rng.coin():
                organism.swap_homolog_sets()
            n_cuts += organism.zygotic_cas9_activity(hdr_reduction, self.drive, self.rng)
        return n_cuts

    def add_to_population(self, other: "Population") -> None:
        """Clone every adult of ``other`` into this population, then reshuffle."""
        self.adults.extend(o.clone() for o in other.adults)
        self.rng.shuffle(self.adults)


# ═══════════════════════════════════════════════════════════════════════
# BUILDERS
# ═══════════════════════════════════════════════════════════════════════

def empty_population(
    capacity: int,
    rng: RandomStream,
    drive: Optional[DriveSection] = None,
    fertility_rules: Optional[FertilityRules] = None,
) -> Population:
    """Empty container, e.g. a migration transfer buffer."""
    return Population(capacity, rng, drive, fertility_rules)


def wild_type_population(
    factory: OrganismFactory,
    n: int,
    capacity: int,
    rng: RandomStream,
    drive: Optional[DriveSection] = None,
    fertility_rules: Optional[FertilityRules] = None,
) -> Population:
    """n // 2 wild-type females and n // 2 wild-type males, shuffled."""
    pop = Population(capacity, rng, drive, fertility_rules, factory.wild_type_cohort(n))
    rng.shuffle(pop.adults)
    return pop


def release_population(
    factory: OrganismFactory,
    template: str,
    n: int,
    capacity: int,
    rng: RandomStream,
    drive: Optional[DriveSection] = None,
    fertility_rules: Optional[FertilityRules] = None,
) -> Population:
    """n organisms of one named template (e.g. drive males), shuffled.

    Raises:
        ConfigurationError: If the template is unknown.
    """
    pop = Population(capacity, rng, drive, fertility_rules, factory.cohort(template, n))
    rng.shuffle(pop.adults)
    return pop


def setup_population(
    factory: OrganismFactory,
    setup: str,
    capacity: int,
    rng: RandomStream,
    drive: Optional[DriveSection] = None,
    fertility_rules: Optional[FertilityRules] = None,
) -> Population:
    """Composite start cohort of a named setup, shuffled.

    Raises:
        ConfigurationError: If the setup is unknown.
    """
    pop = Population(capacity, rng, drive, fertility_rules, factory.setup(setup))
    rng.shuffle(pop.adults)
    return pop


def merge_populations(one: Population, two: Population) -> Population:
    """New population holding clones of both adult cohorts, shuffled.

    Capacity, stream, drive and fertility settings come from ``one``.
    """
    adults = [o.clone() for o in one.adults] + [o.clone() for o in two.adults]
    pop = Population(one.capacity, one.rng, one.drive, one.fertility_rules, adults)
    pop.rng.shuffle(pop.adults)
    return pop
