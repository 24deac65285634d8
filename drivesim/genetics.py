"""Locus and chromosome model with CRISPR cutting and meiosis.

Implements the genome below the organism level:
  - GeneLocus: one gene/allele/position record with a trait mapping
  - Chromosome: an ordered sequence of loci, positionally aligned with
    its homolog, plus the meiotic machinery:
      * simple crossover recombination (linkage by map distance)
      * germline gene drive: Cas9/gRNA cutting of WT target loci followed
        by homing (HDR, copy of the template locus) or NHEJ (R1/R2)

Ownership: a locus belongs to exactly one chromosome and a chromosome to
exactly one organism. Every hand-off copies; drive mutation is applied to
working copies so it never leaks into a parent or another organism.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Union

from drivesim.errors import StructuralError, ValidationError
from drivesim.rng import RandomStream
from drivesim.types import (
    CHROMOSOME_NAMES,
    CONSERVATION,
    PAIR_NAMES,
    SEX_PAIR,
    Allele,
    hom_repair_trait,
)

if TYPE_CHECKING:
    from drivesim.config import DriveSection
    from drivesim.organism import Organism


MAX_RECOMBINATION_FREQUENCY = 0.5   # Free assortment


def as_allele(value: Union[str, Allele]) -> Allele:
    """Coerce to Allele, raising ValidationError for unknown symbols."""
    try:
        return Allele(value)
    except ValueError:
        raise ValidationError(
            f"Invalid allele '{value}'; must be one of "
            f"{[a.value for a in Allele]}"
        ) from None


# ═══════════════════════════════════════════════════════════════════════
# GENE LOCUS
# ═══════════════════════════════════════════════════════════════════════

class GeneLocus:
    """A named gene at a map position carrying one allele and its traits.

    Absent traits read as 0.0: no trait recorded means no activity.
    """

    def __init__(
        self,
        gene_name: str,
        position: float,
        allele: Union[str, Allele] = Allele.WT,
        traits: Optional[Dict[str, float]] = None,
    ):
        self.gene_name = gene_name
        self.position = float(position)
        self.allele = allele
        self.traits: Dict[str, float] = dict(traits) if traits else {}

    @property
    def allele(self) -> Allele:
        return self._allele

    @allele.setter
    def allele(self, value: Union[str, Allele]) -> None:
        self._allele = as_allele(value)

    def clone(self) -> "GeneLocus":
        return GeneLocus(self.gene_name, self.position, self._allele, self.traits)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GeneLocus):
            return NotImplemented
        return (
            self.gene_name == other.gene_name
            and self.position == other.position
            and self._allele is other._allele
            and self.traits == other.traits
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"GeneLocus({self.gene_name!r}, {self.position}, {self._allele.value!r})"

    # ── Map distance ─────────────────────────────────────────────────

    def distance(self, other: "GeneLocus") -> float:
        """Uncapped map distance."""
        return abs(self.position - other.position)

    def recombination_frequency(self, other: "GeneLocus") -> float:
        """Probability the two loci separate in meiosis, capped at 0.5."""
        return min(self.distance(other), MAX_RECOMBINATION_FREQUENCY)

    # ── Identity ─────────────────────────────────────────────────────

    def same_gene(self, other: Union["GeneLocus", str]) -> bool:
        name = other.gene_name if isinstance(other, GeneLocus) else other
        return self.gene_name == name

    def same_allele(self, other: Union["GeneLocus", str, Allele]) -> bool:
        if isinstance(other, GeneLocus):
            return self._allele is other._allele
        return self._allele.value == str(other)

    # ── Traits ───────────────────────────────────────────────────────

    def trait_value(self, name: str) -> float:
        return float(self.traits.get(name, 0.0))

    def set_trait(self, name: str, value: float) -> None:
        self.traits[name] = float(value)

    def inherit_traits(self, source: "GeneLocus") -> None:
        """Replace the trait mapping with a copy of ``source``'s."""
        self.traits = dict(source.traits)

    def inherit_all(self, source: "GeneLocus") -> None:
        """Become a full copy of ``source`` (a homing event)."""
        self.gene_name = source.gene_name
        self.position = source.position
        self._allele = source._allele
        self.traits = dict(source.traits)


# ═══════════════════════════════════════════════════════════════════════
# CHROMOSOME
# ═══════════════════════════════════════════════════════════════════════

class Chromosome:
    """Ordered loci on one named chromosome of a homologous pair."""

    def __init__(self, name: str, pair_name: str, loci: Optional[List[GeneLocus]] = None):
        if name not in CHROMOSOME_NAMES:
            raise ValidationError(
                f"Invalid chromosome name '{name}'; must be one of "
                f"{sorted(CHROMOSOME_NAMES)}"
            )
        if pair_name not in PAIR_NAMES:
            raise ValidationError(
                f"Invalid homologous pair name '{pair_name}'; must be one of "
                f"{sorted(PAIR_NAMES)}"
            )
        self.name = name
        self.pair_name = pair_name
        self.loci: List[GeneLocus] = list(loci) if loci else []

    def clone(self) -> "Chromosome":
        return Chromosome(self.name, self.pair_name, [gl.clone() for gl in self.loci])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Chromosome):
            return NotImplemented
        return (
            self.name == other.name
            and self.pair_name == other.pair_name
            and self.loci == other.loci
        )

    __hash__ = None

    def __len__(self) -> int:
        return len(self.loci)

    def __iter__(self) -> Iterator[GeneLocus]:
        return iter(self.loci)

    def __repr__(self) -> str:
        genes = ", ".join(f"{gl.gene_name}:{gl.allele.value}" for gl in self.loci)
        return f"Chromosome({self.name!r}/{self.pair_name!r} [{genes}])"

    def is_sex_linked(self) -> bool:
        return self.pair_name == SEX_PAIR

    def add_locus(self, locus: GeneLocus) -> None:
        self.loci.append(locus)

    def locus_index(self, gene_name: str) -> Optional[int]:
        """Index of the first locus of ``gene_name``, or None."""
        for i, gl in enumerate(self.loci):
            if gl.gene_name == gene_name:
                return i
        return None

    # ── Construction by recombination ────────────────────────────────

    @staticmethod
    def _check_homologous(h1: "Chromosome", h2: "Chromosome") -> None:
        if h1.pair_name != h2.pair_name:
            raise StructuralError(
                f"Not homologous chromosomes: pair '{h1.pair_name}' "
                f"vs '{h2.pair_name}'"
            )

    @classmethod
    def recombine(
        cls,
        h1: "Chromosome",
        h2: "Chromosome",
        rng: RandomStream,
    ) -> "Chromosome":
        """Single recombinant chromosome from two aligned homologs.

        The first locus picks the starting homolog at random. Between
        consecutive loci a crossover switches the active homolog with
        probability equal to their recombination frequency, so tightly
        linked loci are rarely separated.
        """
        cls._check_homologous(h1, h2)
        if len(h1.loci) != len(h2.loci):
            raise StructuralError(
                f"Homologs of pair '{h1.pair_name}' are not aligned: "
                f"{len(h1.loci)} vs {len(h2.loci)} loci"
            )
        gamete = cls(h1.name, h1.pair_name)
        if not h1.loci:
            return gamete

        active, other = (h1, h2) if rng.coin() else (h2, h1)
        gamete.loci.append(active.loci[0].clone())
        for i in range(1, len(active.loci)):
            rf = active.loci[i].recombination_frequency(active.loci[i - 1])
            if rng.uniform() < rf:
                active, other = other, active
            gamete.loci.append(active.loci[i].clone())
        return gamete

    @classmethod
    def meiosis(
        cls,
        h1: "Chromosome",
        h2: "Chromosome",
        parent: "Organism",
        drive: "DriveSection",
        rng: RandomStream,
    ) -> "Chromosome":
        """Gamete chromosome from a homologous pair with germline drive.

        Sex chromosomes segregate whole (Mendelian, no drive). Autosomes
        are copied, exposed to the parent's germline Cas9/gRNA in both
        directions, then recombined. The parent's own chromosomes are
        never modified.
        """
        cls._check_homologous(h1, h2)

        if h1.is_sex_linked():
            chosen = h1 if rng.coin() else h2
            return chosen.clone()

        w1 = h1.clone()
        w2 = h2.clone()

        sex = parent.sex(drive)
        cas9_level = parent.sex_specific_transgene_level("Cas9", drive, sex)
        if cas9_level > 0:
            for target_gene, grna_name in drive.targets:
                grna_level = parent.transgene_level(grna_name)
                w1.cut_and_home_into(
                    w2, sex, cas9_level, grna_level, target_gene,
                    drive.germline_hdr_reduction, rng,
                )
                w2.cut_and_home_into(
                    w1, sex, cas9_level, grna_level, target_gene,
                    drive.germline_hdr_reduction, rng,
                )

        return cls.recombine(w1, w2, rng)

    # ── CRISPR cutting ───────────────────────────────────────────────

    def cut_and_home_into(
        self,
        source: "Chromosome",
        sex: str,
        cas9_level: float,
        grna_level: float,
        target_gene: str,
        hdr_reduction: float,
        rng: RandomStream,
    ) -> int:
        """Cut WT ``target_gene`` loci on this chromosome, repairing from ``source``.

        A WT locus is cut when ``cas9_level >= u1`` and ``grna_level >= u2``.
        A cut is repaired by homing (full copy of the source locus) with
        probability HomRepair_<sex> of the source locus times
        ``(1 - hdr_reduction)``; otherwise NHEJ yields R2 with probability
        equal to the locus's Conservation trait, else R1.

        Returns:
            Number of cuts performed.
        """
        if len(self.loci) != len(source.loci):
            raise StructuralError(
                f"Cannot home between misaligned chromosomes "
                f"({len(self.loci)} vs {len(source.loci)} loci)"
            )
        n_cuts = 0
        for mine, template in zip(self.loci, source.loci):
            if not mine.same_gene(template) or mine.gene_name != target_gene:
                continue
            if mine.allele is not Allele.WT:
                continue
            u_cas9 = rng.uniform()
            u_grna = rng.uniform()
            if not (cas9_level >= u_cas9 and grna_level >= u_grna):
                continue

            n_cuts += 1
            effective_hdr = template.trait_value(hom_repair_trait(sex)) * (1.0 - hdr_reduction)
            conservation = mine.trait_value(CONSERVATION)
            if effective_hdr >= rng.uniform():
                mine.inherit_all(template)
            elif conservation >= rng.uniform():
                mine.allele = Allele.R2
            else:
                mine.allele = Allele.R1
        return n_cuts
