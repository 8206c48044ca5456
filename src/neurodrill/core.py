# src/neurodrill/core.py
from __future__ import annotations

# General imports (stdlib)
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

# Third-party imports
import pandas as pd
from tqdm import tqdm

# Local imports
from .aggregate import Aggregator
from .config import AgeGroup, Config
from .drilldown import build_series, check_series, to_chart_payload
from .io import filter_domains, read_observations, write_table
from .registry import DomainResolver, ResolvedDomain
from .structure import AggregationNode, HierarchySpec, SeriesRecord, SummaryRow
from .visualization import Visualization

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DrilldownResult:
    """Everything produced by one aggregation run."""
    hierarchy: HierarchySpec
    nodes: Tuple[AggregationNode, ...]
    root_series: Tuple[SummaryRow, ...]
    drilldown_series: Tuple[SeriesRecord, ...]
    payload: Dict[str, Any]

    @property
    def is_empty(self) -> bool:
        return not self.nodes


@dataclass(frozen=True)
class DomainOutput:
    """Result and written files for one resolved domain."""
    resolved: ResolvedDomain
    result: DrilldownResult
    files: Dict[str, Path] = field(default_factory=dict)


class DrilldownPipeline:
    """High-level orchestrator. Minimal logic here; compose replaceable parts."""

    def __init__(
        self,
        cfg: Config,
        resolver: DomainResolver | None = None,
        aggregator: Aggregator | None = None,
        viz: Visualization | None = None,
    ):
        """
        Initialize the pipeline with configuration and pluggable components.

        Args:
            cfg (Config): Global configuration used across the pipeline.
            resolver (DomainResolver | None): Domain resolver; defaults to one
                built over `cfg.registry`.
            aggregator (Aggregator | None): Score aggregator; defaults to `Aggregator(cfg)`.
            viz (Visualization | None): Figure exporter; defaults to `Visualization(cfg)`.
        """
        self.cfg = cfg
        self.resolver = resolver or DomainResolver(cfg.registry, cfg.pathing)
        self.aggregator = aggregator or Aggregator(cfg)
        self.viz = viz or Visualization(cfg)

    @property
    def output_dir(self) -> Path:
        return Path(self.cfg.pathing.directory) / self.cfg.pathing.output_subdir

    def hierarchy(self, hierarchy: Union[str, Sequence[str], HierarchySpec, None]) -> HierarchySpec:
        """Resolve a preset name, column list or spec (None → configured default preset)."""
        if hierarchy is None or isinstance(hierarchy, str):
            return self.cfg.hierarchy(hierarchy)
        if isinstance(hierarchy, HierarchySpec):
            return hierarchy
        return HierarchySpec(columns=tuple(hierarchy))

    def domain_hierarchy(
        self,
        resolved: ResolvedDomain,
        hierarchy: Union[str, Sequence[str], HierarchySpec, None] = None,
    ) -> HierarchySpec:
        """
        Hierarchy for one resolved domain.

        Use:
            Presets (None or a preset name) lose their `narrow` level unless the
            registry entry declares `has_narrow`; unknown domains never have it.
            Explicit column lists and specs are used as given.
        """
        spec = self.hierarchy(hierarchy)
        if hierarchy is not None and not isinstance(hierarchy, str):
            return spec

        has_narrow = resolved.entry is not None and resolved.entry.has_narrow
        if has_narrow or "narrow" not in spec.columns:
            return spec

        keep = [i for i, c in enumerate(spec.columns) if c != "narrow"]
        return HierarchySpec(
            columns=tuple(spec.columns[i] for i in keep),
            labels=tuple(spec.labels[i] for i in keep),
        )

    def build(
        self,
        data: pd.DataFrame,
        hierarchy: Union[str, Sequence[str], HierarchySpec, None] = None,
        title: Optional[str] = None,
    ) -> DrilldownResult:
        """
        Aggregate a table and build its drilldown series and chart payload.

        Args:
            data (pd.DataFrame): Observation table.
            hierarchy: Preset name, column list or HierarchySpec.
            title (str | None): Chart title (typically the patient name).

        Returns:
            DrilldownResult: Nodes, series and payload.

        Raises:
            ValidationError: Malformed hierarchy or unknown preset.
            ConfigurationError: Hierarchy or score columns missing from `data`.
        """
        spec = self.hierarchy(hierarchy)

        nodes = self.aggregator.step("aggregate", self.aggregator.aggregate, data, spec) or ()
        root_series, drilldown_series = build_series(nodes)
        check_series(root_series, drilldown_series)

        payload = to_chart_payload(
            root_series,
            drilldown_series,
            settings=self.cfg.drilldown,
            title=title,
            axis_label=spec.labels[0],
        )
        return DrilldownResult(
            hierarchy=spec,
            nodes=tuple(nodes),
            root_series=root_series,
            drilldown_series=drilldown_series,
            payload=payload,
        )

    def load_source(self, data_source: str) -> pd.DataFrame:
        """Read the observation table configured for a data source key."""
        return read_observations(self.resolver.input_path(data_source))

    def run_domain(
        self,
        domain_name: str,
        age_group: "str | AgeGroup",
        patient: Optional[str] = None,
        hierarchy: Union[str, Sequence[str], HierarchySpec, None] = None,
        data: Optional[pd.DataFrame] = None,
        write: bool = True,
    ) -> DomainOutput:
        """
        Resolve a domain, aggregate its rows and export its outputs.

        Use:
            Unknown domains fall back to a slugified pheno key and the default
            data source. Preset hierarchies skip `narrow` for domains without a
            narrow-ability level. Outputs are named by the section stem
            ("_05_memory"): a JSON chart payload, a flat node table (CSV) and a
            percentile dot plot of the top-level series.

        Args:
            domain_name (str): Domain label or registry key.
            age_group (str | AgeGroup): "adult" or "child".
            patient (str | None): Chart title.
            hierarchy: Preset name, column list or HierarchySpec.
            data (pd.DataFrame | None): Source table; loaded from the domain's
                data source when None.
            write (bool): Export files under the output directory.

        Returns:
            DomainOutput: Resolution, aggregation result and written files.
        """
        resolved = self.resolver.resolve_or_default(domain_name, age_group)
        table = data if data is not None else self.load_source(resolved.data_source)

        names = resolved.entry.domain_names if resolved.entry is not None else (domain_name,)
        subset = filter_domains(table, names)
        if subset.empty:
            logger.info("no rows for domain %r in source %r", domain_name, resolved.data_source)

        spec = self.domain_hierarchy(resolved, hierarchy)
        result = self.build(subset, hierarchy=spec, title=patient)

        files: Dict[str, Path] = {}
        if write and not result.is_empty:
            files = self.export(result, self.resolver.output_stem(resolved), title=patient)
        return DomainOutput(resolved=resolved, result=result, files=files)

    def run_domains(
        self,
        domain_names: Sequence[str],
        age_group: "str | AgeGroup",
        patient: Optional[str] = None,
        hierarchy: Union[str, Sequence[str], HierarchySpec, None] = None,
        write: bool = True,
    ) -> List[DomainOutput]:
        """
        Run `run_domain` for several domains, reading each data source once.

        Returns:
            list[DomainOutput]: One output per domain, in input order.
        """
        tables: Dict[str, pd.DataFrame] = {}
        outputs: List[DomainOutput] = []

        for name in tqdm(domain_names, desc="Processing Domains", unit="domain"):
            source = self.resolver.resolve_or_default(name, age_group).data_source
            if source not in tables:
                tables[source] = self.aggregator.step(f"load {source}", self.load_source, source)
            outputs.append(
                self.run_domain(
                    name, age_group, patient=patient, hierarchy=hierarchy,
                    data=tables[source], write=write,
                )
            )
        return outputs

    def export(self, result: DrilldownResult, stem: str, title: Optional[str] = None) -> Dict[str, Path]:
        """
        Write a result's chart payload, node table and dot plot.

        Returns:
            dict[str, Path]: {"payload", "table", "figure"} paths.
        """
        out_dir = self.output_dir
        out_dir.mkdir(parents=True, exist_ok=True)

        payload_path = out_dir / f"{stem}_drilldown.json"
        with self.aggregator.timed(f"save payload {payload_path.name}"):
            with open(payload_path, "w", encoding="utf-8") as f:
                json.dump(result.payload, f, indent=2, default=str)

        table_path = out_dir / f"{stem}_summary.csv"
        self.aggregator.step("save node table", write_table, Aggregator.to_frame(result.nodes), table_path)

        figure_path = self.aggregator.step(
            "save dot plot", self.viz.save_dotplot, result.root_series, out_dir / f"{stem}_dotplot", title=title,
        )
        return {"payload": payload_path, "table": table_path, "figure": figure_path}
