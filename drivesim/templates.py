"""Organism templates built from the configured genome.

The factory turns GenomeSection into concrete organisms:
  - wild-type female: two copies of every configured chromosome, WT loci,
    maternal sex-gene transcript provided
  - wild-type male: the female with the homolog-A sex chromosome replaced
    by a Y carrying the male-determining loci
  - named templates: a base sex with transgene constructs written over
    the WT allele of their gene on homolog set A and/or B
  - named setups: composite cohorts of several templates

Every call builds fresh loci, so no locus object is shared between
organisms.
"""

from __future__ import annotations

from typing import Dict, List

from drivesim.config import ConstructSpec, GenomeSection, TemplateSpec
from drivesim.errors import ConfigurationError
from drivesim.genetics import Chromosome, GeneLocus
from drivesim.organism import Organism
from drivesim.types import MALE, PF_TRA_MRNA, SEX_PAIR, Allele


class OrganismFactory:
    """Instantiates organisms from a GenomeSection."""

    def __init__(self, genome: GenomeSection):
        self.genome = genome
        self._templates: Dict[str, TemplateSpec] = {t.name: t for t in genome.templates}
        self._constructs: Dict[str, ConstructSpec] = {c.name: c for c in genome.constructs}

    @property
    def template_names(self) -> List[str]:
        return list(self._templates)

    @property
    def setup_names(self) -> List[str]:
        return list(self.genome.setups)

    # ── Base organisms ───────────────────────────────────────────────

    def _chromosome(self, name: str, pair: str) -> Chromosome:
        chrom = Chromosome(name, pair)
        for spec in self.genome.loci:
            if spec.chromosome == name:
                chrom.add_locus(GeneLocus(spec.gene, spec.position, Allele.WT, spec.traits))
        return chrom

    def wild_type_female(self) -> Organism:
        org = Organism()
        for entry in self.genome.chromosomes:
            org.add_pair(
                self._chromosome(entry["name"], entry["pair"]),
                self._chromosome(entry["name"], entry["pair"]),
            )
        org.parental_factors[PF_TRA_MRNA] = 1.0
        return org

    def y_chromosome(self) -> Chromosome:
        chrom = Chromosome("Y", SEX_PAIR)
        for spec in self.genome.y_loci:
            chrom.add_locus(GeneLocus(spec.gene, spec.position, Allele.WT, spec.traits))
        return chrom

    def wild_type_male(self) -> Organism:
        org = self.wild_type_female()
        for pair in org.pairs:
            if pair.is_sex_linked():
                pair.a = self.y_chromosome()
                break
        else:
            raise ConfigurationError("genome has no sex chromosome pair to carry a Y")
        return org

    def construct_locus(self, name: str) -> GeneLocus:
        try:
            spec = self._constructs[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown construct '{name}'. Valid: {list(self._constructs)}"
            ) from None
        return GeneLocus(spec.gene, spec.position, Allele.TRANSGENE, spec.traits)

    # ── Templates and cohorts ────────────────────────────────────────

    def build(self, template_name: str) -> Organism:
        """One organism of a named template."""
        try:
            spec = self._templates[template_name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown organism template '{template_name}'. "
                f"Valid: {self.template_names}"
            ) from None
        org = self.wild_type_male() if spec.sex == MALE else self.wild_type_female()
        for construct in spec.homolog_a:
            org.modify_allele("A", self.construct_locus(construct), Allele.WT)
        for construct in spec.homolog_b:
            org.modify_allele("B", self.construct_locus(construct), Allele.WT)
        return org

    def cohort(self, template_name: str, n: int) -> List[Organism]:
        return [self.build(template_name) for _ in range(n)]

    def wild_type_cohort(self, n: int) -> List[Organism]:
        """n // 2 females followed by n // 2 males."""
        half = n // 2
        return (
            [self.wild_type_female() for _ in range(half)]
            + [self.wild_type_male() for _ in range(half)]
        )

    def setup(self, setup_name: str) -> List[Organism]:
        """All cohorts of a named setup, in configured order."""
        try:
            cohorts = self.genome.setups[setup_name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown setup '{setup_name}'. Valid: {self.setup_names}"
            ) from None
        organisms: List[Organism] = []
        for cohort in cohorts:
            organisms.extend(self.cohort(cohort.template, cohort.count))
        return organisms
