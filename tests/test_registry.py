from pathlib import Path

import pytest

from neurodrill.config import AgeGroup, DomainRegistryEntry, Pathing
from neurodrill.exceptions import NotFoundError, ValidationError
from neurodrill.registry import DomainResolver, slugify


@pytest.fixture
def resolver(cfg):
    return DomainResolver(cfg.registry, cfg.pathing)


def test_unknown_domain_raises_not_found(resolver):
    with pytest.raises(NotFoundError):
        resolver.resolve("Nonexistent Domain", "adult")


def test_age_variant_pheno_and_raters(resolver):
    child = resolver.resolve("ADHD", "child")
    assert child.pheno == "adhd_child"
    assert child.data_source == "neurobehav"
    assert child.section_number == "09"
    assert child.raters == ("self", "parent", "teacher")

    adult = resolver.resolve("ADHD", AgeGroup.ADULT)
    assert adult.pheno == "adhd_adult"
    assert adult.raters == ("self", "observer")


def test_case_insensitive_and_key_match(resolver):
    assert resolver.resolve("memory", "adult").entry.key == "memory"
    assert resolver.resolve("ATTENTION/EXECUTIVE", "adult").pheno == "executive"
    assert resolver.resolve("Behavioral/Emotional/Social", "child").pheno == "emotion_child"


def test_single_rater_domains_default_to_self(resolver):
    memory = resolver.resolve("Memory", "child")
    assert memory.pheno == "memory"
    assert memory.raters == ("self",)


def test_flat_rater_list_applies_to_every_age():
    entry = DomainRegistryEntry(
        "x", ("X Domain",), "x", "neurobehav", "99", multi_rater=True, raters=("self", "parent"),
    )
    resolver = DomainResolver([entry])
    assert resolver.resolve("X Domain", "child").raters == ("self", "parent")
    assert resolver.resolve("X Domain", "adult").raters == ("self", "parent")


def test_per_age_raters_with_string_keys():
    entry = DomainRegistryEntry(
        "y", ("Y Domain",), "y", "neurobehav", "98", multi_rater=True, raters={"child": ("parent",)},
    )
    resolver = DomainResolver([entry])
    assert resolver.resolve("Y Domain", "child").raters == ("parent",)
    assert resolver.resolve("Y Domain", "adult").raters == ("self",)


@pytest.mark.parametrize("age", ["teen", "", None])
def test_invalid_age_group(resolver, age):
    with pytest.raises(ValidationError):
        resolver.resolve("Memory", age)


def test_fallback_uses_slug_and_default_source(resolver):
    resolved = resolver.resolve_or_default("Nonexistent Domain", "adult")
    assert resolved.is_fallback
    assert resolved.pheno == "nonexistent_domain"
    assert resolved.data_source == "neuropsych"
    assert resolved.raters == ("self",)
    assert DomainResolver.output_stem(resolved) == "_nonexistent_domain"


def test_output_stem(resolver):
    memory = resolver.resolve("Memory", "adult")
    assert DomainResolver.output_stem(memory) == "_05_memory"
    assert DomainResolver.output_stem(memory, "text") == "_05_memory.text"


def test_input_path(resolver):
    assert resolver.input_path("neurobehav") == Path(".") / "data" / "neurobehav.parquet"
    assert resolver.input_path("unknown") == Path(".") / "data" / "neuropsych.parquet"

    custom = DomainResolver([], Pathing(directory=Path("/tmp/p"), data_subdir="in"))
    assert custom.input_path("validity") == Path("/tmp/p/in/validity.parquet")


def test_slugify():
    assert slugify("  Visual Perception/Construction ") == "visual_perception_construction"
