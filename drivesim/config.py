"""Configuration system for DriveSim.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → sweep overrides

Defaults reproduce the two-target cage scenario: an FFER female-fertility
drive plus the TRA sex-determination target, Cas9 expressed in both sexes,
no maternal or paternal Cas9 deposition.
"""

from __future__ import annotations

import copy
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from drivesim.errors import ConfigurationError
from drivesim.fertility import FertilityRule
from drivesim.types import CHROMOSOME_NAMES, PAIR_NAMES, SEX_PAIR, SEXES


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Run length and seeding."""
    generations: int = 20
    iterations: int = 10
    seed: int = 42


@dataclass
class PopulationSection:
    """Demography shared by every population."""
    n_populations: int = 1
    initial_size: int = 1000
    capacity: int = 1000
    mortality: float = 0.1          # Shrinks the mate-search budget
    eggs_per_female: int = 50
    setup: Optional[str] = None     # Named composite start cohort; None = wild type


@dataclass
class DriveSection:
    """Gene-drive targets and repair parameters.

    targets: (target gene, gRNA trait name) pairs. The length of this list
    is the number of genes the drive attacks simultaneously.
    """
    targets: List[Tuple[str, str]] = field(
        default_factory=lambda: [("FFER", "gRNA_FFER"), ("TRA", "gRNA_TRA")]
    )
    sex_gene: str = "TRA"
    male_determining_gene: str = "MoY"
    germline_hdr_reduction: float = 0.0
    zygotic_hdr_reduction: float = 0.99


@dataclass
class InterventionSection:
    """Release window: ``release_size`` organisms of ``release_template``
    merged into ``target_population`` every generation in
    [start_generation, end_generation]."""
    enabled: bool = False
    start_generation: int = 2
    end_generation: int = 2
    release_size: int = 100
    release_template: str = "drive_male"
    target_population: int = 0


@dataclass
class MigrationLink:
    """Symmetric per-individual, per-generation migration probability."""
    source: int
    dest: int
    rate: float


@dataclass
class LocusSpec:
    """A wild-type locus placed on every copy of ``chromosome``."""
    gene: str
    chromosome: str
    position: float
    traits: Dict[str, float] = field(default_factory=dict)


@dataclass
class ConstructSpec:
    """A transgene construct inserted over the WT allele of ``gene``."""
    name: str
    gene: str
    position: float
    traits: Dict[str, float] = field(default_factory=dict)


@dataclass
class TemplateSpec:
    """Organism template: base sex plus constructs per homolog set."""
    name: str
    sex: str = "female"
    homolog_a: List[str] = field(default_factory=list)
    homolog_b: List[str] = field(default_factory=list)


@dataclass
class CohortSpec:
    template: str
    count: int


def _default_chromosomes() -> List[Dict[str, str]]:
    return [
        {"name": "X", "pair": SEX_PAIR},
        {"name": "2", "pair": "2"},
        {"name": "3", "pair": "3"},
    ]


def _default_loci() -> List[LocusSpec]:
    return [
        LocusSpec("FFER", "2", 1.0, {
            "Conservation": 1.0,
            "HomRepair_male": 0.959,
            "HomRepair_female": 0.994,
        }),
        LocusSpec("TRA", "3", 2.0, {
            "Conservation": 0.90,
            "HomRepair_male": 0.95,
            "HomRepair_female": 0.994,
        }),
    ]


def _default_y_loci() -> List[LocusSpec]:
    return [LocusSpec("MoY", "Y", 1.0, {})]


def _default_constructs() -> List[ConstructSpec]:
    return [
        ConstructSpec("drive", "FFER", 1.0, {
            "Cas9_male": 1.0,
            "Cas9_female": 1.0,
            "Cas9_maternal": 0.0,
            "Cas9_paternal": 0.0,
            "gRNA_FFER": 1.0,
            "HomRepair_male": 0.959,
            "HomRepair_female": 0.994,
        }),
        ConstructSpec("tra_drive", "TRA", 2.0, {
            "Cas9_male": 1.0,
            "Cas9_female": 1.0,
            "Cas9_maternal": 0.0,
            "Cas9_paternal": 0.0,
            "gRNA_TRA": 1.0,
            "HomRepair_male": 0.95,
            "HomRepair_female": 0.994,
        }),
    ]


def _default_templates() -> List[TemplateSpec]:
    return [
        TemplateSpec("wild_type_female", "female"),
        TemplateSpec("wild_type_male", "male"),
        TemplateSpec("drive_male", "male", homolog_a=["drive"]),
        TemplateSpec("drive_female", "female", homolog_a=["drive"]),
        TemplateSpec("tra_drive_male", "male", homolog_a=["tra_drive"]),
    ]


def _default_setups() -> Dict[str, List[CohortSpec]]:
    return {
        "cage setup": [
            CohortSpec("wild_type_female", 75),
            CohortSpec("wild_type_male", 50),
            CohortSpec("drive_male", 25),
        ],
    }


@dataclass
class GenomeSection:
    """Chromosome layout, wild-type loci, constructs, templates, setups.

    The wild-type female carries two copies of every chromosome in
    ``chromosomes``. The wild-type male has the homolog-A sex chromosome
    replaced by a Y carrying ``y_loci``.
    """
    chromosomes: List[Dict[str, str]] = field(default_factory=_default_chromosomes)
    loci: List[LocusSpec] = field(default_factory=_default_loci)
    y_loci: List[LocusSpec] = field(default_factory=_default_y_loci)
    constructs: List[ConstructSpec] = field(default_factory=_default_constructs)
    templates: List[TemplateSpec] = field(default_factory=_default_templates)
    setups: Dict[str, List[CohortSpec]] = field(default_factory=_default_setups)

    def construct_names(self) -> List[str]:
        return [c.name for c in self.constructs]

    def template_names(self) -> List[str]:
        return [t.name for t in self.templates]


@dataclass
class OutputSection:
    """Statistics output control."""
    directory: str = "results/"
    filename: str = "modeloutput.csv"
    sweep_filename: str = "modelsweepoutput.csv"
    track: List[str] = field(default_factory=lambda: ["TRA", "FFER"])
    sample_size: int = 48


@dataclass
class SimulationConfig:
    """Complete simulation configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    population: PopulationSection = field(default_factory=PopulationSection)
    drive: DriveSection = field(default_factory=DriveSection)
    intervention: InterventionSection = field(default_factory=InterventionSection)
    genome: GenomeSection = field(default_factory=GenomeSection)
    output: OutputSection = field(default_factory=OutputSection)
    migration: List[MigrationLink] = field(default_factory=list)
    fertility: List[FertilityRule] = field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values (including lists) are replaced
    - Keys in override but not base are added

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def set_by_path(data: Dict, path: str, value: Any) -> Dict:
    """Set ``data['a']['b'] = value`` for ``path='a.b'``, creating dicts."""
    keys = path.split(".")
    node = data
    for key in keys[:-1]:
        node = node.setdefault(key, {})
        if not isinstance(node, dict):
            raise ConfigurationError(f"Cannot set '{path}': '{key}' is not a section")
    node[keys[-1]] = value
    return data


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    try:
        return section_cls(**filtered)
    except TypeError as exc:
        raise ConfigurationError(f"{section_cls.__name__}: {exc}") from exc


def _list_of(section_cls, items: Any) -> list:
    if not isinstance(items, list):
        return []
    return [_dict_to_section(section_cls, d) for d in items if isinstance(d, dict)]


def _genome_from_dict(data: Dict) -> GenomeSection:
    genome = GenomeSection()
    if "chromosomes" in data:
        genome.chromosomes = [dict(c) for c in data["chromosomes"]]
    if "loci" in data:
        genome.loci = _list_of(LocusSpec, data["loci"])
    if "y_loci" in data:
        genome.y_loci = _list_of(LocusSpec, data["y_loci"])
    if "constructs" in data:
        genome.constructs = _list_of(ConstructSpec, data["constructs"])
    if "templates" in data:
        genome.templates = _list_of(TemplateSpec, data["templates"])
    if "setups" in data and isinstance(data["setups"], dict):
        genome.setups = {
            name: _list_of(CohortSpec, cohorts)
            for name, cohorts in data["setups"].items()
        }
    return genome


def _yaml_to_config(data: Dict) -> SimulationConfig:
    """Convert a merged YAML dict to a SimulationConfig."""
    sections = {}
    section_map = {
        'simulation': SimulationSection,
        'population': PopulationSection,
        'drive': DriveSection,
        'intervention': InterventionSection,
        'output': OutputSection,
    }
    for key, cls in section_map.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()

    # YAML has no tuples
    targets = sections['drive'].targets
    if isinstance(targets, list):
        sections['drive'].targets = [
            tuple(t) if isinstance(t, list) else t for t in targets
        ]

    if 'genome' in data and isinstance(data['genome'], dict):
        sections['genome'] = _genome_from_dict(data['genome'])
    else:
        sections['genome'] = GenomeSection()

    sections['migration'] = _list_of(MigrationLink, data.get('migration'))
    sections['fertility'] = _list_of(FertilityRule, data.get('fertility'))

    return SimulationConfig(**sections)


def config_to_dict(config: SimulationConfig) -> Dict:
    """Plain-dict view of a config (inverse of ``_yaml_to_config``).

    Tuples become lists so the result can be written with yaml.safe_dump.
    """
    data = dataclasses.asdict(config)
    data["drive"]["targets"] = [list(t) for t in data["drive"]["targets"]]
    return data


def _check_int(name: str, value: Any, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")


def _check_unit_interval(name: str, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if not (0.0 <= value <= 1.0):
        raise ConfigurationError(f"{name} must be in [0, 1], got {value}")


def validate_config(config: SimulationConfig) -> None:
    """Validate configuration constraints. Raises ConfigurationError on failure.

    Checks:
      - Run lengths, capacities and probabilities are in range
      - Drive targets are well formed
      - Every template, construct and setup referenced actually exists
      - Migration links reference existing populations
    """
    sim = config.simulation
    _check_int("simulation.generations", sim.generations, 1)
    _check_int("simulation.iterations", sim.iterations, 1)
    _check_int("simulation.seed", sim.seed, 0)

    pop = config.population
    _check_int("population.n_populations", pop.n_populations, 1)
    _check_int("population.capacity", pop.capacity, 1)
    _check_int("population.initial_size", pop.initial_size, 0)
    _check_int("population.eggs_per_female", pop.eggs_per_female, 0)
    _check_unit_interval("population.mortality", pop.mortality)

    drive = config.drive
    if not drive.targets:
        raise ConfigurationError("drive.targets must list at least one (gene, gRNA) pair")
    for target in drive.targets:
        if not isinstance(target, tuple) or len(target) != 2:
            raise ConfigurationError(
                f"drive.targets entries must be (gene, gRNA) pairs, got {target}"
            )
    _check_unit_interval("drive.germline_hdr_reduction", drive.germline_hdr_reduction)
    _check_unit_interval("drive.zygotic_hdr_reduction", drive.zygotic_hdr_reduction)

    genome = config.genome
    pair_of = {}
    for chrom in genome.chromosomes:
        name, pair = chrom.get("name"), chrom.get("pair")
        if name not in CHROMOSOME_NAMES or pair not in PAIR_NAMES:
            raise ConfigurationError(
                f"genome.chromosomes entry {chrom} has an invalid name or pair"
            )
        pair_of[name] = pair
    for locus in genome.loci:
        if locus.chromosome not in pair_of:
            raise ConfigurationError(
                f"genome.loci: gene {locus.gene} placed on unknown chromosome "
                f"'{locus.chromosome}'"
            )
    construct_names = set(genome.construct_names())
    wt_genes = {locus.gene for locus in genome.loci}
    for construct in genome.constructs:
        if construct.gene not in wt_genes:
            raise ConfigurationError(
                f"genome.constructs: '{construct.name}' targets unknown gene "
                f"'{construct.gene}'"
            )
    for template in genome.templates:
        if template.sex not in SEXES:
            raise ConfigurationError(
                f"genome.templates: '{template.name}' has invalid sex '{template.sex}'"
            )
        for name in template.homolog_a + template.homolog_b:
            if name not in construct_names:
                raise ConfigurationError(
                    f"genome.templates: '{template.name}' uses unknown construct '{name}'"
                )
    template_names = set(genome.template_names())
    for setup_name, cohorts in genome.setups.items():
        for cohort in cohorts:
            if cohort.template not in template_names:
                raise ConfigurationError(
                    f"genome.setups: '{setup_name}' uses unknown template "
                    f"'{cohort.template}'"
                )
            if cohort.count < 0:
                raise ConfigurationError(
                    f"genome.setups: '{setup_name}' has a negative count"
                )
    if pop.setup is not None and pop.setup not in genome.setups:
        raise ConfigurationError(f"population.setup '{pop.setup}' is not defined")

    iv = config.intervention
    if iv.enabled:
        _check_int("intervention.start_generation", iv.start_generation, 1)
        _check_int("intervention.end_generation", iv.end_generation, 1)
        _check_int("intervention.target_population", iv.target_population, 0)
        if iv.start_generation > iv.end_generation:
            raise ConfigurationError(
                f"intervention.start_generation ({iv.start_generation}) must be <= "
                f"end_generation ({iv.end_generation})"
            )
        if iv.release_template not in template_names:
            raise ConfigurationError(
                f"intervention.release_template '{iv.release_template}' is not defined"
            )
        if not (0 <= iv.target_population < pop.n_populations):
            raise ConfigurationError(
                f"intervention.target_population {iv.target_population} out of range "
                f"[0, {pop.n_populations})"
            )
        _check_int("intervention.release_size", iv.release_size, 0)

    for i, link in enumerate(config.migration):
        for idx in (link.source, link.dest):
            _check_int(f"migration[{i}] population index", idx, 0)
            if not (0 <= idx < pop.n_populations):
                raise ConfigurationError(
                    f"migration[{i}] references population {idx}, valid range "
                    f"[0, {pop.n_populations})"
                )
        if link.source == link.dest:
            raise ConfigurationError(f"migration[{i}] links population {link.source} to itself")
        _check_unit_interval(f"migration[{i}].rate", link.rate)

    _check_int("output.sample_size", config.output.sample_size, 0)


def load_config(
    base_path: Optional[Union[str, Path]] = None,
    scenario_path: Optional[Union[str, Path]] = None,
    sweep_overrides: Optional[Dict] = None,
) -> SimulationConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → sweep overrides.
    Each layer overrides only the fields it specifies. Without a base
    file the built-in defaults form the base layer.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        ConfigurationError: If validation fails.
    """
    if base_path is None:
        config_dict = config_to_dict(SimulationConfig())
    else:
        base_path = Path(base_path)
        if not base_path.exists():
            raise FileNotFoundError(f"Config file not found: {base_path}")
        with open(base_path) as f:
            config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if not scenario_path.exists():
            raise FileNotFoundError(f"Scenario file not found: {scenario_path}")
        with open(scenario_path) as f:
            scenario = yaml.safe_load(f) or {}
        deep_merge(config_dict, scenario)

    if sweep_overrides is not None:
        deep_merge(config_dict, sweep_overrides)

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def override_config(config: SimulationConfig, overrides: Dict[str, Any]) -> SimulationConfig:
    """Return a validated copy of ``config`` with dotted-path overrides applied.

    Example:
        >>> override_config(cfg, {'drive.zygotic_hdr_reduction': 0.95})
    """
    data = copy.deepcopy(config_to_dict(config))
    for path, value in overrides.items():
        set_by_path(data, path, value)
    new_config = _yaml_to_config(data)
    validate_config(new_config)
    return new_config


def default_config() -> SimulationConfig:
    """Return a SimulationConfig with all default values."""
    config = SimulationConfig()
    validate_config(config)
    return config
