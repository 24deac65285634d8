"""DriveSim: individual-based simulation of CRISPR homing gene drives.

A stochastic, discrete-generation model of diploid populations carrying
Cas9/gRNA gene-drive constructs:
  - Explicit chromosomes with linked loci and crossover recombination
  - Germline and zygotic (maternally/paternally deposited) cutting,
    homing by HDR and R1/R2 resistance alleles from NHEJ
  - Sex determination by a Y-linked male determiner and a maternally
    provisioned sex-gene transcript
  - Density-regulated populations linked by symmetric migration
  - Release interventions and two-parameter sweeps
"""

__version__ = "0.1.0"
