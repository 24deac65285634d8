"""Diploid organisms: genotype queries, sex, reproduction, zygotic drive.

An Organism holds one HomologPair per homologous chromosome pair. Slot
``a`` is the paternal contribution (homolog set A), slot ``b`` the maternal
one (homolog set B); pairing by construction keeps the two sets the same
length and in the same order.

Parental factors are non-genomic quantities deposited at conception:
  - "Cas9": combined maternal + paternal Cas9 deposition (clamped to 1)
  - "<gRNA name>": combined gRNA deposition per drive target
  - "TRA_mRNA": maternal provision of the sex-gene transcript (0 or 1)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Tuple, Union

from drivesim.errors import StructuralError, ValidationError
from drivesim.genetics import Chromosome, GeneLocus
from drivesim.rng import RandomStream
from drivesim.types import (
    CAS9_MATERNAL,
    CAS9_PATERNAL,
    FEMALE,
    MALE,
    PF_CAS9,
    PF_TRA_MRNA,
    Allele,
    cas9_trait,
    grna_trait,
)

if TYPE_CHECKING:
    from drivesim.config import DriveSection
    from drivesim.fertility import FertilityRules


def clamp01(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def _gene_allele(gene: Union[GeneLocus, str], allele: Optional[str]) -> Tuple[str, str]:
    if isinstance(gene, GeneLocus):
        return gene.gene_name, gene.allele.value
    return gene, str(allele)


@dataclass
class HomologPair:
    """The two homologs of one chromosome pair: a (paternal), b (maternal)."""
    a: Chromosome
    b: Chromosome

    def __post_init__(self):
        if self.a.pair_name != self.b.pair_name:
            raise StructuralError(
                f"Cannot pair chromosome {self.a.name} ('{self.a.pair_name}') "
                f"with {self.b.name} ('{self.b.pair_name}')"
            )

    @property
    def pair_name(self) -> str:
        return self.a.pair_name

    def is_sex_linked(self) -> bool:
        return self.a.is_sex_linked()

    def clone(self) -> "HomologPair":
        return HomologPair(self.a.clone(), self.b.clone())


class Organism:
    """A diploid individual."""

    def __init__(self):
        self.pairs: List[HomologPair] = []
        self.parental_factors: Dict[str, float] = {}

    # ── Construction ─────────────────────────────────────────────────

    def clone(self) -> "Organism":
        twin = Organism()
        twin.pairs = [p.clone() for p in self.pairs]
        twin.parental_factors = dict(self.parental_factors)
        return twin

    @classmethod
    def from_parents(
        cls,
        father: "Organism",
        mother: "Organism",
        drive: "DriveSection",
        rng: RandomStream,
    ) -> "Organism":
        """Offspring of a cross: one gamete per parent plus parental factors."""
        paternal = father.gamete_chromosomes(drive, rng)
        maternal = mother.gamete_chromosomes(drive, rng)
        if len(paternal) != len(maternal):
            raise StructuralError(
                f"Parents have different karyotypes: {len(paternal)} vs "
                f"{len(maternal)} chromosome pairs"
            )
        child = cls()
        for a, b in zip(paternal, maternal):
            child.add_pair(a, b)

        child.parental_factors[PF_CAS9] = clamp01(
            mother.transgene_level(CAS9_MATERNAL)
            + father.transgene_level(CAS9_PATERNAL)
        )
        for _, grna_name in drive.targets:
            child.parental_factors[grna_name] = clamp01(
                mother.transgene_level(grna_name) + father.transgene_level(grna_name)
            )
        if drive.sex_gene:
            child.parental_factors[PF_TRA_MRNA] = mother.maternal_transcript(drive, rng)
        return child

    def add_pair(self, a: Chromosome, b: Chromosome) -> None:
        self.pairs.append(HomologPair(a, b))

    def __repr__(self) -> str:
        return f"Organism({self.sex_chrom_karyotype()}, pairs={len(self.pairs)})"

    # ── Homolog sets ─────────────────────────────────────────────────

    @property
    def homolog_set_a(self) -> List[Chromosome]:
        return [p.a for p in self.pairs]

    @property
    def homolog_set_b(self) -> List[Chromosome]:
        return [p.b for p in self.pairs]

    def _homolog_set(self, which: str) -> List[Chromosome]:
        if which == "A":
            return self.homolog_set_a
        if which == "B":
            return self.homolog_set_b
        raise ValidationError(f"Homolog set must be 'A' or 'B', got '{which}'")

    def iter_loci(self) -> Iterator[GeneLocus]:
        """Every locus, set A before set B."""
        for chrom in self.homolog_set_a:
            yield from chrom.loci
        for chrom in self.homolog_set_b:
            yield from chrom.loci

    def swap_homolog_sets(self) -> None:
        for pair in self.pairs:
            pair.a, pair.b = pair.b, pair.a

    def modify_allele(
        self,
        which: str,
        new_locus: GeneLocus,
        allele_to_replace: Union[str, Allele] = Allele.WT,
    ) -> int:
        """Overwrite matching loci of one homolog set with copies of ``new_locus``.

        Returns:
            Number of loci replaced.
        """
        replace = str(allele_to_replace)
        n = 0
        for chrom in self._homolog_set(which):
            for gl in chrom.loci:
                if gl.same_gene(new_locus) and gl.same_allele(replace):
                    gl.inherit_all(new_locus)
                    n += 1
        return n

    # ── Meiosis ──────────────────────────────────────────────────────

    def gamete_chromosomes(self, drive: "DriveSection", rng: RandomStream) -> List[Chromosome]:
        """One recombined (and drive-exposed) chromosome per homologous pair."""
        return [
            Chromosome.meiosis(pair.a, pair.b, self, drive, rng)
            for pair in self.pairs
        ]

    def maternal_transcript(self, drive: "DriveSection", rng: RandomStream) -> float:
        """Sex-gene transcript this organism deposits into its eggs.

        R1 mothers always provide it, mothers without a WT copy never do;
        otherwise her own Cas9/gRNA may destroy it before deposition.
        """
        gene = drive.sex_gene
        if self.allele_present(gene, Allele.R1):
            return 1.0
        if not self.allele_present(gene, Allele.WT):
            return 0.0
        cas9_level = self.transgene_level(cas9_trait(FEMALE))
        grna_level = self.transgene_level(_grna_for(drive, gene))
        u_cas9 = rng.uniform()
        u_grna = rng.uniform()
        if cas9_level >= u_cas9 and grna_level >= u_grna:
            return 0.0
        return 1.0

    # ── Sex ──────────────────────────────────────────────────────────

    def sex_chrom_karyotype(self) -> str:
        karyo = ""
        for chrom in self.homolog_set_a:
            if chrom.is_sex_linked():
                karyo += chrom.name
                break
        for chrom in self.homolog_set_b:
            if chrom.is_sex_linked():
                karyo += chrom.name
                break
        return karyo

    def sex(self, drive: "DriveSection") -> str:
        """Phenotypic sex.

        A WT male-determining locus on a sex chromosome makes a male.
        Otherwise female, unless the maternal sex-gene transcript is
        missing or no functional (WT/R1) copy of the sex gene remains.
        """
        sex = FEMALE
        for pair in self.pairs:
            if not pair.is_sex_linked():
                continue
            for chrom in (pair.a, pair.b):
                for gl in chrom.loci:
                    if gl.gene_name == drive.male_determining_gene and gl.allele is Allele.WT:
                        sex = MALE
        if not drive.sex_gene:
            return sex
        if self.parental_factors.get(PF_TRA_MRNA, 0.0) < 1.0:
            return MALE
        if (self.allele_present(drive.sex_gene, Allele.WT)
                or self.allele_present(drive.sex_gene, Allele.R1)):
            return sex
        return MALE

    def is_female(self, drive: "DriveSection") -> bool:
        return self.sex(drive) == FEMALE

    def is_male(self, drive: "DriveSection") -> bool:
        return self.sex(drive) == MALE

    def fertility(
        self,
        rules: Optional["FertilityRules"],
        drive: "DriveSection",
    ) -> float:
        """Fecundity multiplier in [0, 1]."""
        if rules is None:
            return 1.0
        return rules.evaluate(self, drive)

    # ── Genotype queries ─────────────────────────────────────────────

    def _has(self, chromosomes: List[Chromosome], gene: str, allele: str) -> bool:
        for chrom in chromosomes:
            for gl in chrom.loci:
                if gl.gene_name == gene and gl.allele.value == allele:
                    return True
        return False

    def allele_present(
        self,
        gene: Union[GeneLocus, str],
        allele: Optional[Union[str, Allele]] = None,
    ) -> bool:
        gene, allele = _gene_allele(gene, allele)
        return (self._has(self.homolog_set_a, gene, allele)
                or self._has(self.homolog_set_b, gene, allele))

    def allele_homozygous(
        self,
        gene: Union[GeneLocus, str],
        allele: Optional[Union[str, Allele]] = None,
    ) -> bool:
        gene, allele = _gene_allele(gene, allele)
        return (self._has(self.homolog_set_a, gene, allele)
                and self._has(self.homolog_set_b, gene, allele))

    def allele_heterozygous(
        self,
        first: Union[GeneLocus, str],
        second: Union[GeneLocus, str, Allele],
        gene2: Optional[str] = None,
        allele2: Optional[Union[str, Allele]] = None,
    ) -> bool:
        """True if both named alleles exist somewhere in the diploid genome.

        Call as ``(locus1, locus2)`` or ``(gene1, allele1, gene2, allele2)``.
        """
        if isinstance(first, GeneLocus):
            return self.allele_present(first) and self.allele_present(second)
        return self.allele_present(first, second) and self.allele_present(gene2, allele2)

    def transgene_level(self, trait_name: str) -> float:
        """Summed trait over all Transgene loci, clamped to at most 1.0."""
        level = sum(
            gl.trait_value(trait_name)
            for gl in self.iter_loci()
            if gl.allele is Allele.TRANSGENE
        )
        return min(level, 1.0)

    def sex_specific_transgene_level(
        self,
        prefix: str,
        drive: "DriveSection",
        sex: Optional[str] = None,
    ) -> float:
        """Level of trait ``<prefix>_<sex>``, e.g. Cas9_male in a phenotypic male.

        ``sex`` may be passed when already known.
        """
        if sex is None:
            sex = self.sex(drive)
        return self.transgene_level(f"{prefix}_{sex}")

    def genotype(self, gene_name: str) -> str:
        """Alleles at ``gene_name`` as "X,Y", greater symbol first."""
        gt_a = _allele_symbol(self.homolog_set_a, gene_name)
        gt_b = _allele_symbol(self.homolog_set_b, gene_name)
        return ",".join(sorted((gt_a, gt_b), reverse=True))

    # ── Zygotic drive ────────────────────────────────────────────────

    def zygotic_cas9_activity(
        self,
        hdr_reduction: float,
        drive: "DriveSection",
        rng: RandomStream,
    ) -> int:
        """Deposited Cas9/gRNA acting on this zygote's own autosomes.

        For each target with deposited gRNA, set A is cut using set B as
        repair template, then set B using set A.

        Returns:
            Number of cuts performed.
        """
        cas9_level = self.parental_factors.get(PF_CAS9, 0.0)
        if cas9_level <= 0:
            return 0
        sex = self.sex(drive)
        autosomes = [p for p in self.pairs if not p.is_sex_linked()]
        n_cuts = 0
        for target_gene, grna_name in drive.targets:
            grna_level = self.parental_factors.get(grna_name, 0.0)
            if grna_level <= 0:
                continue
            for pair in autosomes:
                n_cuts += pair.a.cut_and_home_into(
                    pair.b, sex, cas9_level, grna_level, target_gene, hdr_reduction, rng,
                )
            for pair in autosomes:
                n_cuts += pair.b.cut_and_home_into(
                    pair.a, sex, cas9_level, grna_level, target_gene, hdr_reduction, rng,
                )
        return n_cuts


def _grna_for(drive: "DriveSection", gene: str) -> str:
    """gRNA trait configured against ``gene`` (conventional name if untargeted)."""
    for target_gene, grna_name in drive.targets:
        if target_gene == gene:
            return grna_name
    return grna_trait(gene)


def _allele_symbol(chromosomes: List[Chromosome], gene_name: str) -> str:
    """Allele symbol of ``gene_name`` on a homolog set ("" if absent)."""
    symbol = ""
    for chrom in chromosomes:
        i = chrom.locus_index(gene_name)
        if i is not None:
            symbol = chrom.loci[i].allele.value
    return symbol
