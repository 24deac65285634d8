"""Tests for drivesim.config — configuration loading and validation."""

from pathlib import Path

import pytest
import yaml

from drivesim.config import (
    DriveSection,
    GenomeSection,
    InterventionSection,
    MigrationLink,
    OutputSection,
    PopulationSection,
    SimulationConfig,
    SimulationSection,
    config_to_dict,
    deep_merge,
    default_config,
    load_config,
    override_config,
    set_by_path,
    validate_config,
)
from drivesim.errors import ConfigurationError
from drivesim.fertility import FertilityRule

CONFIG_DIR = Path(__file__).parent.parent / "configs"


# ── deep_merge tests ──────────────────────────────────────────────────

class TestDeepMerge:
    def test_simple_override(self):
        assert deep_merge({'a': 1, 'b': 2}, {'b': 3}) == {'a': 1, 'b': 3}

    def test_nested_merge(self):
        base = {'x': {'a': 1, 'b': 2}, 'y': 10}
        override = {'x': {'b': 3, 'c': 4}}
        assert deep_merge(base, override) == {'x': {'a': 1, 'b': 3, 'c': 4}, 'y': 10}

    def test_lists_replaced(self):
        base = {'drive': {'targets': [['FFER', 'gRNA_FFER'], ['TRA', 'gRNA_TRA']]}}
        override = {'drive': {'targets': [['FFER', 'gRNA_FFER']]}}
        assert deep_merge(base, override)['drive']['targets'] == [['FFER', 'gRNA_FFER']]

    def test_override_dict_with_scalar(self):
        assert deep_merge({'a': {'nested': 1}}, {'a': 'replaced'}) == {'a': 'replaced'}


class TestSetByPath:
    def test_nested(self):
        data = {'drive': {'sex_gene': 'TRA'}}
        set_by_path(data, 'drive.zygotic_hdr_reduction', 0.5)
        assert data == {'drive': {'sex_gene': 'TRA', 'zygotic_hdr_reduction': 0.5}}

    def test_creates_sections(self):
        assert set_by_path({}, 'a.b.c', 1) == {'a': {'b': {'c': 1}}}

    def test_through_scalar_raises(self):
        with pytest.raises(ConfigurationError, match="not a section"):
            set_by_path({'a': 5}, 'a.b', 1)


# ── default_config tests ─────────────────────────────────────────────

class TestDefaultConfig:
    def test_creates_valid_config(self):
        assert isinstance(default_config(), SimulationConfig)

    def test_default_values(self):
        config = default_config()
        assert config.simulation.generations == 20
        assert config.simulation.iterations == 10
        assert config.population.capacity == 1000
        assert config.population.mortality == 0.1
        assert config.population.eggs_per_female == 50
        assert config.drive.targets == [("FFER", "gRNA_FFER"), ("TRA", "gRNA_TRA")]
        assert config.drive.germline_hdr_reduction == 0.0
        assert config.drive.zygotic_hdr_reduction == 0.99
        assert config.intervention.start_generation == 2
        assert config.intervention.release_size == 100
        assert config.output.track == ["TRA", "FFER"]
        assert config.output.sample_size == 48

    def test_default_genome(self):
        genome = default_config().genome
        assert [c["name"] for c in genome.chromosomes] == ["X", "2", "3"]
        assert genome.construct_names() == ["drive", "tra_drive"]
        assert "drive_male" in genome.template_names()
        assert "cage setup" in genome.setups

    def test_sections_independent(self):
        a = SimulationConfig()
        b = SimulationConfig()
        a.drive.targets.append(("X", "gRNA_X"))
        assert len(b.drive.targets) == 2


# ── YAML loading tests ───────────────────────────────────────────────

class TestLoadConfig:
    def test_load_from_yaml(self, tmp_path):
        config_path = tmp_path / "test.yaml"
        with open(config_path, 'w') as f:
            yaml.dump({'simulation': {'seed': 99, 'generations': 5}}, f)

        config = load_config(config_path)
        assert config.simulation.seed == 99
        assert config.simulation.generations == 5
        # Unspecified sections get defaults
        assert config.population.capacity == 1000
        assert config.drive.sex_gene == "TRA"

    def test_targets_become_tuples(self, tmp_path):
        config_path = tmp_path / "test.yaml"
        with open(config_path, 'w') as f:
            yaml.dump({'drive': {'targets': [['CP', 'gRNA_CP']]}}, f)
        config_path2 = tmp_path / "genome.yaml"
        with open(config_path2, 'w') as f:
            yaml.dump({'genome': {'loci': [
                {'gene': 'CP', 'chromosome': '2', 'position': 1.0, 'traits': {}},
            ], 'constructs': [], 'templates': [], 'setups': {}},
                'intervention': {'enabled': False}}, f)
        config = load_config(config_path, scenario_path=config_path2)
        assert config.drive.targets == [('CP', 'gRNA_CP')]
        assert config.genome.loci[0].gene == 'CP'

    @pytest.mark.parametrize("section,key", [
        ("simulation", "seed"),
        ("drive", "targets"),
    ])
    def test_null_values_rejected(self, tmp_path, section, key):
        scen_path = tmp_path / "null.yaml"
        scen_path.write_text(f"{section}:\n  {key}: null\n")
        with pytest.raises(ConfigurationError, match=key):
            load_config(scenario_path=scen_path)

    def test_without_base_uses_defaults(self, tmp_path):
        scen_path = tmp_path / "scenario.yaml"
        with open(scen_path, 'w') as f:
            yaml.dump({'population': {'capacity': 200}}, f)
        config = load_config(None, scenario_path=scen_path)
        assert config.population.capacity == 200
        assert config.population.eggs_per_female == 50
        assert config.genome.setups["cage setup"][0].count == 75

    def test_load_with_scenario_override(self, tmp_path):
        base_path = tmp_path / "base.yaml"
        scen_path = tmp_path / "scenario.yaml"
        with open(base_path, 'w') as f:
            yaml.dump({'population': {'capacity': 500, 'mortality': 0.2}}, f)
        with open(scen_path, 'w') as f:
            yaml.dump({'population': {'capacity': 300}}, f)

        config = load_config(base_path, scenario_path=scen_path)
        assert config.population.capacity == 300
        assert config.population.mortality == 0.2   # unchanged

    def test_load_with_sweep_overrides(self, tmp_path):
        base_path = tmp_path / "base.yaml"
        with open(base_path, 'w') as f:
            yaml.dump({'simulation': {'seed': 42}}, f)
        config = load_config(base_path, sweep_overrides={'simulation': {'seed': 123}})
        assert config.simulation.seed == 123

    def test_migration_and_fertility(self, tmp_path):
        base_path = tmp_path / "base.yaml"
        with open(base_path, 'w') as f:
            yaml.dump({
                'population': {'n_populations': 2},
                'migration': [{'source': 0, 'dest': 1, 'rate': 0.1}],
                'fertility': [{'gene': 'FFER', 'allele': 'Transgene',
                               'zygosity': 'homozygous', 'multiplier': 0.0}],
            }, f)
        config = load_config(base_path)
        assert config.migration == [MigrationLink(0, 1, 0.1)]
        assert isinstance(config.fertility[0], FertilityRule)

    def test_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nonexistent.yaml")

    def test_scenario_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(None, scenario_path=tmp_path / "nonexistent.yaml")

    def test_unknown_keys_ignored(self, tmp_path):
        base_path = tmp_path / "base.yaml"
        with open(base_path, 'w') as f:
            yaml.dump({'simulation': {'seed': 7, 'colour': 'blue'}}, f)
        assert load_config(base_path).simulation.seed == 7

    def test_load_real_default_yaml(self):
        config = load_config(CONFIG_DIR / "default.yaml")
        assert config == default_config()

    @pytest.mark.parametrize("name", ["cage", "release", "two_populations", "female_sterility"])
    def test_load_real_scenarios(self, name):
        config = load_config(CONFIG_DIR / "default.yaml", CONFIG_DIR / "scenarios" / f"{name}.yaml")
        assert isinstance(config, SimulationConfig)


class TestRoundTrip:
    def test_dict_view_reloads(self):
        config = default_config()
        data = config_to_dict(config)
        assert yaml.safe_load(yaml.safe_dump(data)) == data

    def test_override_config(self):
        config = default_config()
        new = override_config(config, {'drive.zygotic_hdr_reduction': 0.5,
                                       'population.capacity': 200})
        assert new.drive.zygotic_hdr_reduction == 0.5
        assert new.population.capacity == 200
        assert new.drive.targets == config.drive.targets
        assert config.population.capacity == 1000

    def test_override_validates(self):
        with pytest.raises(ConfigurationError, match="mortality"):
            override_config(default_config(), {'population.mortality': 1.5})


# ── Validation tests ──────────────────────────────────────────────────

class TestValidation:
    def test_errors_are_value_errors(self):
        config = default_config()
        config.population.capacity = 0
        with pytest.raises(ValueError, match="capacity"):
            validate_config(config)

    @pytest.mark.parametrize("path,value,match", [
        ("simulation.generations", 0, "generations"),
        ("simulation.iterations", 0, "iterations"),
        ("population.n_populations", 0, "n_populations"),
        ("population.mortality", -0.1, "mortality"),
        ("population.eggs_per_female", -1, "eggs_per_female"),
        ("drive.zygotic_hdr_reduction", 1.01, "zygotic_hdr_reduction"),
        ("drive.germline_hdr_reduction", -0.5, "germline_hdr_reduction"),
        ("drive.targets", [], "targets"),
        ("population.setup", "missing", "population.setup"),
        ("output.sample_size", -1, "sample_size"),
        ("simulation.seed", None, "seed"),
        ("simulation.generations", 2.5, "generations"),
        ("population.capacity", "many", "capacity"),
        ("population.mortality", None, "mortality"),
        ("drive.targets", None, "targets"),
        ("drive.targets", [["FFER"]], "targets"),
    ])
    def test_bad_values(self, path, value, match):
        with pytest.raises(ConfigurationError, match=match):
            override_config(default_config(), {path: value})

    def test_intervention_window(self):
        config = default_config()
        config.intervention = InterventionSection(enabled=True, start_generation=5,
                                                  end_generation=3)
        with pytest.raises(ConfigurationError, match="start_generation"):
            validate_config(config)

    def test_disabled_intervention_not_checked(self):
        config = default_config()
        config.intervention = InterventionSection(enabled=False, start_generation=5,
                                                  end_generation=3)
        validate_config(config)

    def test_intervention_template(self):
        config = default_config()
        config.intervention = InterventionSection(enabled=True, release_template="ghost")
        with pytest.raises(ConfigurationError, match="release_template"):
            validate_config(config)

    def test_intervention_target_population(self):
        config = default_config()
        config.intervention = InterventionSection(enabled=True, target_population=1)
        with pytest.raises(ConfigurationError, match="target_population"):
            validate_config(config)

    @pytest.mark.parametrize("link,match", [
        (MigrationLink(0, 2, 0.1), "references population"),
        (MigrationLink(1, 1, 0.1), "itself"),
        (MigrationLink(0, 1, 2.0), "rate"),
    ])
    def test_migration_links(self, link, match):
        config = default_config()
        config.population.n_populations = 2
        config.migration = [link]
        with pytest.raises(ConfigurationError, match=match):
            validate_config(config)

    def test_template_unknown_construct(self):
        config = default_config()
        config.genome.templates[2].homolog_a = ["ghost"]
        with pytest.raises(ConfigurationError, match="unknown construct"):
            validate_config(config)

    def test_construct_unknown_gene(self):
        config = default_config()
        config.genome.constructs[0].gene = "GHOST"
        with pytest.raises(ConfigurationError, match="unknown gene"):
            validate_config(config)

    def test_setup_unknown_template(self):
        config = default_config()
        config.genome.setups["cage setup"][0].template = "ghost"
        with pytest.raises(ConfigurationError, match="unknown template"):
            validate_config(config)

    def test_bad_chromosome(self):
        config = default_config()
        config.genome.chromosomes.append({"name": "4", "pair": "4"})
        with pytest.raises(ConfigurationError, match="chromosomes"):
            validate_config(config)

    def test_locus_on_missing_chromosome(self):
        config = default_config()
        config.genome.chromosomes = config.genome.chromosomes[:2]
        with pytest.raises(ConfigurationError, match="unknown chromosome"):
            validate_config(config)

    def test_template_bad_sex(self):
        config = default_config()
        config.genome.templates[0].sex = "both"
        with pytest.raises(ConfigurationError, match="invalid sex"):
            validate_config(config)

    def test_bad_section_field_type(self, tmp_path):
        base_path = tmp_path / "base.yaml"
        with open(base_path, 'w') as f:
            yaml.dump({'migration': [{'source': 0, 'rate': 0.1}]}, f)
        with pytest.raises(ConfigurationError, match="MigrationLink"):
            load_config(base_path)


# ── Section dataclass tests ───────────────────────────────────────────

class TestSections:
    def test_section_defaults(self):
        assert SimulationSection().seed == 42
        assert PopulationSection().setup is None
        assert DriveSection().male_determining_gene == "MoY"
        assert OutputSection().filename == "modeloutput.csv"
        assert OutputSection().sweep_filename == "modelsweepoutput.csv"
        assert GenomeSection().y_loci[0].gene == "MoY"
