"""Tests for drivesim.stats — generation statistics and CSV output."""

import csv
import logging

import pytest

from drivesim.config import DriveSection, GenomeSection, default_config
from drivesim.genetics import Chromosome
from drivesim.organism import Organism
from drivesim.population import Population, setup_population
from drivesim.rng import make_stream
from drivesim.stats import (
    STAT_HEADER,
    SWEEP_HEADER,
    StatRow,
    StatsWriter,
    SweepRow,
    egg_row,
    generation_rows,
    genotype_counts,
    karyotype_counts,
    sample_genotype_counts,
    sex_counts,
)
from drivesim.templates import OrganismFactory
from drivesim.types import Allele


@pytest.fixture
def factory():
    return OrganismFactory(GenomeSection())


class TestCounts:
    def test_genotype_counts(self, factory):
        adults = [factory.wild_type_female(), factory.build("drive_male")]
        counts = genotype_counts(adults, ["TRA", "FFER"])
        assert counts[("TRA", "WT,WT")] == 2
        assert counts[("FFER", "WT,WT")] == 1
        assert counts[("FFER", "WT,Transgene")] == 1
        assert list(counts)[0] == ("TRA", "WT,WT")

    def test_sample_uses_head(self, factory):
        adults = [factory.build("drive_male")] * 3 + [factory.wild_type_female()] * 5
        counts = sample_genotype_counts(adults, ["FFER"], 3)
        assert dict(counts) == {("FFER", "WT,Transgene"): 3}

    def test_sample_larger_than_population(self, factory):
        adults = [factory.wild_type_female()] * 2
        assert sum(sample_genotype_counts(adults, ["FFER"], 48).values()) == 2

    def test_sex_counts(self, factory):
        adults = [factory.wild_type_female()] * 3 + [factory.wild_type_male()] * 2
        assert sex_counts(adults, DriveSection()) == (2, 3)

    def test_karyotype_counts_fold_yx(self, factory):
        male = factory.wild_type_male()
        swapped = factory.wild_type_male()
        swapped.swap_homolog_sets()
        adults = [factory.wild_type_female(), male, swapped]
        assert {male.sex_chrom_karyotype(), swapped.sex_chrom_karyotype()} == {"XY", "YX"}
        assert karyotype_counts(adults) == (1, 2)

    def test_unexpected_karyotype_warns(self, caplog):
        odd = Organism()
        odd.add_pair(Chromosome("2", "2"), Chromosome("2", "2"))
        with caplog.at_level(logging.WARNING, logger="drivesim.stats"):
            assert karyotype_counts([odd]) == (0, 0)
        assert "Unexpected sex-chromosome karyotype" in caplog.text

    def test_drive_can_decouple_sex_from_karyotype(self, factory):
        """A karyotypic female without maternal transcript is a phenotypic male."""
        org = factory.wild_type_female()
        org.parental_factors["TRA_mRNA"] = 0.0
        assert sex_counts([org], DriveSection()) == (1, 0)
        assert karyotype_counts([org]) == (1, 0)


class TestRows:
    def test_generation_rows(self, factory):
        config = default_config()
        pop = setup_population(factory, "cage setup", 150, make_stream(1), config.drive)
        rows = generation_rows(3, 7, 0, pop, config)
        assert all(isinstance(r, StatRow) for r in rows)
        assert all(r.iteration == 3 and r.generation == 7 and r.population == 0 for r in rows)

        by_key = {(r.category, r.name, r.value, r.scope): r.count for r in rows}
        assert by_key[("Sex", "Males", "NA", "all")] == 75
        assert by_key[("Sex", "Females", "NA", "all")] == 75
        assert by_key[("Sex_Karyotype", "XX", "NA", "all")] == 75
        assert by_key[("Sex_Karyotype", "XY", "NA", "all")] == 75
        assert by_key[("FFER", "WT", "Transgene", "all")] == 25
        assert by_key[("FFER", "WT", "WT", "all")] == 125
        assert by_key[("TRA", "WT", "WT", "all")] == 150

        sample = [r for r in rows if r.scope == "sample" and r.category == "TRA"]
        assert sum(r.count for r in sample) == config.output.sample_size

    def test_empty_population_rows(self):
        config = default_config()
        pop = Population(10, make_stream(2), config.drive)
        rows = generation_rows(1, 1, 0, pop, config)
        assert [(r.category, r.name, r.count) for r in rows] == [
            ("Sex", "Males", 0), ("Sex", "Females", 0),
            ("Sex_Karyotype", "XX", 0), ("Sex_Karyotype", "XY", 0),
        ]

    def test_egg_row(self):
        assert egg_row(1, 2, 0, 812) == StatRow(1, 2, 0, "Eggs", "NA", "NA", 812, "all")

    def test_resistance_genotype_row(self, factory):
        config = default_config()
        org = factory.wild_type_female()
        org.homolog_set_b[2].loci[0].allele = Allele.R1
        pop = Population(10, make_stream(3), config.drive, adults=[org])
        rows = generation_rows(1, 1, 0, pop, config)
        assert StatRow(1, 1, 0, "TRA", "WT", "R1", 1, "all") in rows


class TestStatsWriter:
    def test_writes_header_and_rows(self, tmp_path):
        path = tmp_path / "out" / "modeloutput.csv"
        with StatsWriter(path) as writer:
            writer.write_rows([egg_row(1, 1, 0, 10), egg_row(1, 2, 0, 20)])
        assert writer.n_rows == 2
        with open(path, newline='') as f:
            lines = list(csv.reader(f))
        assert lines[0] == list(STAT_HEADER)
        assert lines[2] == ["1", "2", "0", "Eggs", "NA", "NA", "20", "all"]

    def test_sweep_header(self, tmp_path):
        path = tmp_path / "sweep.csv"
        with StatsWriter(path, header=SWEEP_HEADER) as writer:
            writer.write_rows([SweepRow(1, 0.9, 0.1, 140)])
        with open(path, newline='') as f:
            lines = list(csv.reader(f))
        assert lines == [list(SWEEP_HEADER), ["1", "0.9", "0.1", "140"]]

    def test_write_before_open_raises(self, tmp_path):
        writer = StatsWriter(tmp_path / "x.csv")
        with pytest.raises(RuntimeError, match="not open"):
            writer.write_rows([egg_row(1, 1, 0, 1)])

    def test_closed_after_context(self, tmp_path):
        with StatsWriter(tmp_path / "x.csv") as writer:
            pass
        with pytest.raises(RuntimeError):
            writer.write_rows([egg_row(1, 1, 0, 1)])
