"""
Domain-to-source resolution.

Use:
    Look up a human-readable domain name in the domain registry and return the
    phenotype key (age-adjusted), data source, section number and raters that
    drive which input table and output file names a report section uses.
"""


# src/neurodrill/registry.py
from __future__ import annotations

# General imports (stdlib)
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

# Local imports
from .config import AgeGroup, DomainRegistryEntry, Pathing
from .exceptions import NotFoundError
from .scores import ScoreType

logger = logging.getLogger(__name__)

DEFAULT_RATERS: Tuple[str, ...] = ("self",)


@dataclass(frozen=True)
class ResolvedDomain:
    """
    A registry entry specialised to one age group.

    Layout:
        domain_name    (str)                 : Name the caller asked for.
        age_group      (AgeGroup)            : Age group used for resolution.
        pheno          (str)                 : Effective phenotype key ("adhd_child").
        data_source    (str)                 : Input table key.
        section_number (str | None)          : Report section number; None for fallbacks.
        raters         (Tuple[str, ...])     : Raters for this age group.
        score_types    (Tuple[ScoreType, ...]): Score metrics reported in the domain.
        entry          (DomainRegistryEntry | None): Source entry; None for fallbacks.
    """
    domain_name: str
    age_group: AgeGroup
    pheno: str
    data_source: str
    section_number: Optional[str]
    raters: Tuple[str, ...]
    score_types: Tuple[ScoreType, ...] = ()
    entry: Optional[DomainRegistryEntry] = None

    @property
    def is_fallback(self) -> bool:
        return self.entry is None


def slugify(name: str) -> str:
    """Lowercase a domain name and collapse non-alphanumeric runs to "_"."""
    return re.sub(r"[^0-9a-z]+", "_", name.strip().lower()).strip("_")


class DomainResolver:
    """Resolve domain names against an immutable registry."""

    def __init__(self, registry: Iterable[DomainRegistryEntry], pathing: Pathing = Pathing()) -> None:
        """
        Args:
            registry (Iterable[DomainRegistryEntry]): Registry table (e.g. `cfg.registry`).
            pathing (Pathing): Input/output path conventions used by `input_path`.
        """
        self.registry: Tuple[DomainRegistryEntry, ...] = tuple(registry)
        self.pathing = pathing

        # Exact and case-insensitive name indexes; first entry wins on duplicates
        self._exact: Dict[str, DomainRegistryEntry] = {}
        self._folded: Dict[str, DomainRegistryEntry] = {}
        for entry in self.registry:
            for name in (*entry.domain_names, entry.key):
                self._exact.setdefault(name, entry)
                self._folded.setdefault(name.casefold(), entry)

    def lookup(self, domain_name: str) -> DomainRegistryEntry:
        """
        Find the registry entry for a domain name or registry key.

        Raises:
            NotFoundError: If neither an exact nor a case-insensitive match exists.
        """
        entry = self._exact.get(domain_name)
        if entry is None:
            entry = self._folded.get(str(domain_name).casefold())
        if entry is None:
            raise NotFoundError(f"Domain not found: {domain_name}")
        return entry

    def resolve(self, domain_name: str, age_group: "str | AgeGroup") -> ResolvedDomain:
        """
        Resolve a domain name for one age group.

        Args:
            domain_name (str): Domain label (e.g. "ADHD", "Memory") or registry key.
            age_group (str | AgeGroup): "adult" or "child".

        Returns:
            ResolvedDomain: Entry with the effective pheno key and raters.

        Raises:
            ValidationError: If `age_group` is missing or invalid.
            NotFoundError: If the domain is not in the registry.
        """
        age = AgeGroup.parse(age_group)
        entry = self.lookup(domain_name)

        return ResolvedDomain(
            domain_name=domain_name,
            age_group=age,
            pheno=self.effective_pheno(entry, age),
            data_source=entry.data_source,
            section_number=entry.section_number,
            raters=self.raters_for(entry, age),
            score_types=entry.score_types,
            entry=entry,
        )

    def resolve_or_default(self, domain_name: str, age_group: "str | AgeGroup") -> ResolvedDomain:
        """Like `resolve`, but fall back to a slugified pheno key and the default data source."""
        try:
            return self.resolve(domain_name, age_group)
        except NotFoundError:
            pheno = slugify(domain_name)
            logger.info("domain %r not in registry; using fallback pheno %r", domain_name, pheno)
            return ResolvedDomain(
                domain_name=domain_name,
                age_group=AgeGroup.parse(age_group),
                pheno=pheno,
                data_source=self.pathing.default_source,
                section_number=None,
                raters=DEFAULT_RATERS,
            )

    @staticmethod
    def effective_pheno(entry: DomainRegistryEntry, age_group: AgeGroup) -> str:
        if age_group in entry.age_variants:
            return f"{entry.pheno}_{age_group.value}"
        return entry.pheno

    @staticmethod
    def raters_for(entry: DomainRegistryEntry, age_group: AgeGroup) -> Tuple[str, ...]:
        if not entry.multi_rater:
            return DEFAULT_RATERS

        raters = entry.raters
        if isinstance(raters, dict):
            # Per-age mapping; keys may be AgeGroup members or plain strings
            found = raters.get(age_group, raters.get(age_group.value))
            return tuple(found) if found else DEFAULT_RATERS
        return tuple(raters) if raters else DEFAULT_RATERS

    def input_path(self, data_source: str) -> Path:
        """Table path for a data source key, falling back to the default source."""
        pathing = self.pathing
        name = pathing.sources.get(data_source)
        if name is None:
            logger.info("unknown data source %r; using %r", data_source, pathing.default_source)
            name = pathing.sources[pathing.default_source]
        return Path(pathing.directory) / pathing.data_subdir / name

    @staticmethod
    def output_stem(resolved: ResolvedDomain, variant: Optional[str] = None) -> str:
        """Section file stem: "_{section}_{pheno}" plus ".{variant}" when given."""
        prefix = f"_{resolved.section_number}" if resolved.section_number else ""
        stem = f"{prefix}_{resolved.pheno}"
        return f"{stem}.{variant}" if variant else stem
