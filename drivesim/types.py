"""Core enumerations and constants for DriveSim.

This module is the single place that defines:
  - Allele: the four allele symbols a locus may carry
  - Chromosome and homologous-pair name enumerations
  - Sex labels and the trait / parental-factor key conventions

Trait keys are plain strings stored on each GeneLocus. The conventions:
  - "Cas9_male", "Cas9_female"        germline Cas9 expression by parent sex
  - "Cas9_maternal", "Cas9_paternal"  Cas9 deposited into the zygote
  - "gRNA_<gene>"                     gRNA expression against <gene>
  - "HomRepair_male", "HomRepair_female"  HDR probability on the template
  - "Conservation"                    probability NHEJ yields R2 rather than R1
"""

from enum import Enum


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class Allele(str, Enum):
    """Allele at a locus.

    WT         wild type; the only allele Cas9 can cut
    TRANSGENE  the gene-drive construct
    R1         functional resistance (in-frame NHEJ repair)
    R2         non-functional resistance (loss of function)
    """
    WT = "WT"
    TRANSGENE = "Transgene"
    R1 = "R1"
    R2 = "R2"

    def __str__(self) -> str:
        return self.value


CHROMOSOME_NAMES = frozenset({"1", "2", "3", "X", "Y"})
PAIR_NAMES = frozenset({"1", "2", "3", "Sex"})
SEX_PAIR = "Sex"


# ═══════════════════════════════════════════════════════════════════════
# SEX
# ═══════════════════════════════════════════════════════════════════════

FEMALE = "female"
MALE = "male"
SEXES = (FEMALE, MALE)


# ═══════════════════════════════════════════════════════════════════════
# TRAIT AND PARENTAL-FACTOR KEYS
# ═══════════════════════════════════════════════════════════════════════

CONSERVATION = "Conservation"
CAS9_MATERNAL = "Cas9_maternal"
CAS9_PATERNAL = "Cas9_paternal"

# Parental-factor keys
PF_CAS9 = "Cas9"
PF_TRA_MRNA = "TRA_mRNA"


def cas9_trait(sex: str) -> str:
    """Germline Cas9 trait key for a parent of the given sex."""
    return f"Cas9_{sex}"


def hom_repair_trait(sex: str) -> str:
    """Homology-directed repair trait key for the given sex."""
    return f"HomRepair_{sex}"


def grna_trait(gene: str) -> str:
    """Conventional gRNA trait key for a target gene."""
    return f"gRNA_{gene}"
