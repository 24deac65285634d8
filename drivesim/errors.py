"""Exception hierarchy for DriveSim.

All errors derive from ValueError so callers that already guard
configuration/validation failures with ``except ValueError`` keep working.
"""


class DriveSimError(Exception):
    """Base class for all DriveSim errors."""


class ValidationError(DriveSimError, ValueError):
    """A value outside its fixed enumeration (allele, chromosome, pair name)."""


class StructuralError(DriveSimError, ValueError):
    """Chromosomes paired or recombined that are not homologous/aligned."""


class ConfigurationError(DriveSimError, ValueError):
    """Unknown template/setup names, bad parameters, bad population indices."""
