# src/neurodrill/config.py
from __future__ import annotations

# General imports (stdlib)
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

# Local imports
from .exceptions import ConfigurationError, DataNotFound, ValidationError
from .scores import ScoreType
from .structure import HierarchySpec


class AgeGroup(str, Enum):
    ADULT = "adult"
    CHILD = "child"

    @classmethod
    def parse(cls, value: "str | AgeGroup | None") -> "AgeGroup":
        if isinstance(value, AgeGroup):
            return value
        if value is None or not str(value).strip():
            raise ValidationError("Missing age group. Must be one of: adult, child")
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Invalid age group: {value!r}. Must be one of: adult, child"
            ) from None


Raters = Union[Tuple[str, ...], Dict[AgeGroup, Tuple[str, ...]]]


@dataclass(frozen=True)
class DomainRegistryEntry:
    key: str                                                                     # Registry key (e.g. "adhd")
    domain_names: Tuple[str, ...]                                                # Domain labels as they appear in the data
    pheno: str                                                                   # Phenotype key used for file naming
    data_source: str                                                             # Input table key (neurocog | neurobehav | validity)
    section_number: str                                                          # Report section number ("01".."13")
    score_types: Tuple[ScoreType, ...] = ()                                      # Score metrics reported in this domain
    multi_rater: bool = False                                                    # Rating scales completed by several raters
    age_variants: Tuple[AgeGroup, ...] = ()                                      # Age groups with a dedicated pheno variant
    raters: Raters = ()                                                          # Flat rater list or per-age mapping
    has_narrow: bool = False                                                     # Domain tables carry a narrow-ability level


def default_registry() -> Tuple[DomainRegistryEntry, ...]:
    S, C, T = ScoreType.STANDARD_SCORE, ScoreType.SCALED_SCORE, ScoreType.T_SCORE
    adult, child = AgeGroup.ADULT, AgeGroup.CHILD
    return (
        # Cognitive domains
        DomainRegistryEntry("iq", ("General Cognitive Ability",), "iq", "neurocog", "01", (S,), has_narrow=True),
        DomainRegistryEntry("academics", ("Academic Skills",), "academics", "neurocog", "02", (S,)),
        DomainRegistryEntry("verbal", ("Verbal/Language",), "verbal", "neurocog", "03", (S, C, T)),
        DomainRegistryEntry("spatial", ("Visual Perception/Construction",), "spatial", "neurocog", "04", (S, C, T)),
        DomainRegistryEntry("memory", ("Memory",), "memory", "neurocog", "05", (S, C, T)),
        DomainRegistryEntry("executive", ("Attention/Executive",), "executive", "neurocog", "06", (S, C, T)),
        DomainRegistryEntry("motor", ("Motor",), "motor", "neurocog", "07", (C, T)),
        DomainRegistryEntry("social", ("Social Cognition",), "social", "neurocog", "08", (S, T, C)),

        # Behavioral domains
        DomainRegistryEntry(
            "adhd", ("ADHD",), "adhd", "neurobehav", "09", (T,),
            multi_rater=True,
            age_variants=(adult, child),
            raters={adult: ("self", "observer"), child: ("self", "parent", "teacher")},
        ),
        DomainRegistryEntry(
            "emotion",
            ("Emotional/Behavioral/Personality", "Behavioral/Emotional/Social"),
            "emotion", "neurobehav", "10", (T,),
            multi_rater=True,
            age_variants=(adult, child),
            raters={adult: ("self",), child: ("self", "parent", "teacher")},
        ),
        DomainRegistryEntry("adaptive", ("Adaptive Functioning",), "adaptive", "neurobehav", "11", (S, C)),
        DomainRegistryEntry("daily_living", ("Daily Living",), "daily_living", "neurocog", "12", (T,)),

        # Validity
        DomainRegistryEntry(
            "validity", ("Performance Validity", "Symptom Validity"), "validity", "validity", "13",
            (T, ScoreType.BASE_RATE, ScoreType.RAW_SCORE),
        ),
    )


def default_presets() -> Dict[str, HierarchySpec]:
    return {
        "clinical": HierarchySpec.from_mapping({
            "domain": "Clinical Domain", "subdomain": "Subdomain", "narrow": "Narrow Ability", "scale": "Test Score",
        }),
        "pass_model": HierarchySpec.from_mapping({
            "pass": "PASS Process", "domain": "Clinical Domain", "subdomain": "Subdomain", "scale": "Test Score",
        }),
        "pass_clinical": HierarchySpec.from_mapping({
            "pass": "PASS Process", "verbal": "Modality", "domain": "Clinical Domain", "subdomain": "Subdomain",
        }),
        "modality": HierarchySpec.from_mapping({
            "verbal": "Test Modality", "timed": "Timing Constraint", "domain": "Clinical Domain", "subdomain": "Subdomain",
        }),
        "modality_clinical": HierarchySpec.from_mapping({
            "verbal": "Test Modality", "domain": "Clinical Domain", "subdomain": "Subdomain", "scale": "Test Score",
        }),
        "timing": HierarchySpec.from_mapping({
            "timed": "Timing Constraint", "domain": "Clinical Domain", "subdomain": "Subdomain", "scale": "Test Score",
        }),
        "pass_modality": HierarchySpec.from_mapping({
            "pass": "PASS Process", "verbal": "Test Modality", "timed": "Timing Constraint", "domain": "Clinical Domain",
        }),
    }


@dataclass(frozen=True)
class Pathing:
    directory: Path = Path(".")                                                  # Patient workspace root
    data_subdir: str = "data"                                                    # Input tables under directory
    output_subdir: str = "output"                                                # Chart payloads and figures under directory
    sources: Dict[str, str] = field(default_factory=lambda: {                    # Data-source key -> table file name
        "neurocog": "neurocog.parquet",
        "neurobehav": "neurobehav.parquet",
        "validity": "validity.parquet",
        "neuropsych": "neuropsych.parquet",
    })
    default_source: str = "neuropsych"                                           # Used when a source key is unknown


@dataclass(frozen=True)
class Scoring:
    percentile_clip: Tuple[float, float] = (0.5, 99.5)                           # Clamp before percentile -> z inversion
    z_decimals: int = 2                                                          # Rounding of mean z-scores
    percentile_decimals: int = 0                                                 # Rounding of mean percentiles


@dataclass(frozen=True)
class Drilldown:
    preset: str = "clinical"                                                     # Default hierarchy preset
    root_type: str = "bar"                                                       # Chart type of the top-level series
    drilldown_type: str = "column"                                               # Chart type of every drilldown series
    series_name: str = "Neuropsychological Test Scores"                          # Name of the top-level series


@dataclass(frozen=True)
class Display:
    width: float = 8.0                                                           # Figure width (inches)
    base_height: float = 0.4                                                     # Inches per plotted row
    min_height: float = 4.0                                                      # Minimum figure height (inches)
    point_size: float = 80.0                                                     # Marker area (pt²)
    line_color: str = "black"                                                    # Stem and marker edge color
    colormap: str = "RdYlBu"                                                     # Low (red) to high (blue) fill
    font_size: float = 9.0                                                       # Tick/label font size
    dpi: int = 300                                                               # Output resolution in dots-per-inch
    image_format: str = "png"                                                    # File format for saved figure


@dataclass(frozen=True)
class Config:
    pathing: Pathing = Pathing()                                                 # File/directory locations and naming conventions
    scoring: Scoring = Scoring()                                                 # Score conversion parameters
    drilldown: Drilldown = Drilldown()                                           # Chart hierarchy and series settings
    display: Display = Display()                                                 # Static dot plot settings
    presets: Dict[str, HierarchySpec] = field(default_factory=default_presets)   # Named hierarchies
    registry: Tuple[DomainRegistryEntry, ...] = field(default_factory=default_registry)  # Domain registry table

    def hierarchy(self, preset: Optional[str] = None) -> HierarchySpec:
        """Return the named hierarchy preset (the configured default when None)."""
        name = preset or self.drilldown.preset
        if name not in self.presets:
            raise ValidationError(
                f"Unknown preset: {name}. Available presets: {', '.join(self.presets)}"
            )
        return self.presets[name]


def make_config(directory: Optional[Path] = None, preset: Optional[str] = None) -> Config:
    """
    Build and validate a Config object for a drilldown run.

    Use:
        Construct a Config with defaults, optionally pointing it at a patient
        workspace directory and a default hierarchy preset, then validate the
        scoring parameters and the domain registry.

    Args:
        directory (Path | None): Patient workspace root; must exist if given.
        preset (str | None): Default hierarchy preset name.

    Returns:
        Config: Fully-initialized configuration.

    Raises:
        DataNotFound: If `directory` does not exist or is not a directory.
        ConfigurationError: If the preset is unknown, the percentile clip bounds
            are not inside (0, 100), or registry keys/section numbers repeat.
    """
    # Instantiate configuration using defaults from the Config dataclass
    cfg = Config()

    # Point at the patient workspace if requested
    if directory is not None:
        if not Path(directory).is_dir():
            raise DataNotFound(f"directory not found: {directory}")
        cfg = replace(cfg, pathing=replace(cfg.pathing, directory=Path(directory)))

    # Swap the default hierarchy preset
    if preset is not None:
        if preset not in cfg.presets:
            raise ConfigurationError(
                f"Config: unknown preset {preset!r}. Available presets: {', '.join(cfg.presets)}"
            )
        cfg = replace(cfg, drilldown=replace(cfg.drilldown, preset=preset))

    # Percentile inversion is undefined at 0 and 100
    lo, hi = cfg.scoring.percentile_clip
    if not (0 < lo < hi < 100):
        raise ConfigurationError(
            f"Config: 'scoring.percentile_clip' must satisfy 0 < low < high < 100, got {cfg.scoring.percentile_clip}"
        )

    # Registry keys and section numbers identify output files, so they must be unique
    keys = [e.key for e in cfg.registry]
    numbers = [e.section_number for e in cfg.registry]
    if len(set(keys)) != len(keys) or len(set(numbers)) != len(numbers):
        raise ConfigurationError("Config: domain registry keys and section numbers must be unique")

    if cfg.pathing.default_source not in cfg.pathing.sources:
        raise ConfigurationError(
            f"Config: 'pathing.default_source' {cfg.pathing.default_source!r} is not a configured source"
        )

    return cfg
