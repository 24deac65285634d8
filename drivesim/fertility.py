"""Pluggable genotype → fertility rules.

Fecundity penalties differ between drive scenarios (different target
genes, different magnitudes), so they are configuration, not code. A rule
table is a list of FertilityRule; an organism's fertility is the product
of the multipliers of every rule it matches, clamped to [0, 1].

Example (recessive female sterility of a CP drive homozygote):

    FertilityRule(gene="CP", allele="Transgene", zygosity="homozygous",
                  sex="female", multiplier=0.9)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from drivesim.errors import ConfigurationError
from drivesim.types import SEXES, Allele

if TYPE_CHECKING:
    from drivesim.config import DriveSection
    from drivesim.organism import Organism


ZYGOSITIES = ("present", "homozygous", "heterozygous")


@dataclass
class FertilityRule:
    """One row of the fertility table.

    zygosity:
      'present'       at least one copy of ``allele`` at ``gene``
      'homozygous'    ``allele`` on both homolog sets
      'heterozygous'  both ``allele`` and ``other_allele`` present at ``gene``
    sex: 'any', 'female' or 'male' (phenotypic sex).
    """
    gene: str
    allele: str
    zygosity: str = "homozygous"
    multiplier: float = 1.0
    sex: str = "any"
    other_allele: Optional[str] = None

    def __post_init__(self):
        if self.zygosity not in ZYGOSITIES:
            raise ConfigurationError(
                f"fertility rule zygosity must be one of {ZYGOSITIES}, "
                f"got '{self.zygosity}'"
            )
        if self.sex != "any" and self.sex not in SEXES:
            raise ConfigurationError(
                f"fertility rule sex must be 'any' or one of {SEXES}, "
                f"got '{self.sex}'"
            )
        if self.zygosity == "heterozygous" and self.other_allele is None:
            raise ConfigurationError(
                f"fertility rule for {self.gene}/{self.allele}: "
                f"other_allele required when zygosity='heterozygous'"
            )
        try:
            Allele(self.allele)
            if self.other_allele is not None:
                Allele(self.other_allele)
        except ValueError as exc:
            raise ConfigurationError(
                f"fertility rule for {self.gene}: {exc}"
            ) from exc
        if self.multiplier < 0:
            raise ConfigurationError(
                f"fertility rule multiplier must be >= 0, got {self.multiplier}"
            )

    def matches(self, organism: "Organism", sex: str) -> bool:
        if self.sex != "any" and self.sex != sex:
            return False
        if self.zygosity == "present":
            return organism.allele_present(self.gene, self.allele)
        if self.zygosity == "homozygous":
            return organism.allele_homozygous(self.gene, self.allele)
        return organism.allele_heterozygous(
            self.gene, self.allele, self.gene, self.other_allele,
        )


@dataclass
class FertilityRules:
    """Ordered fertility rule table. Empty table → fertility 1.0."""
    rules: List[FertilityRule] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.rules)

    def evaluate(self, organism: "Organism", drive: "DriveSection") -> float:
        """Fertility multiplier in [0, 1] for ``organism``."""
        if not self.rules:
            return 1.0
        sex = organism.sex(drive)
        fertility = 1.0
        for rule in self.rules:
            if rule.matches(organism, sex):
                fertility *= rule.multiplier
        return min(max(fertility, 0.0), 1.0)
