"""
Pipeline orchestrator

Runs the analysis stages in order, writing a CSV checkpoint after each data
stage so later stages can be rerun from disk.

Usage:
  python -m lifeexp.pipeline.build_pipeline --config config/model.yml
  python -m lifeexp.pipeline.build_pipeline --data data/raw/esg.csv --skiprows 3084
  python -m lifeexp.pipeline.build_pipeline --start-at transform   # reuse data/processed/features.csv

Stages:
  load -> aggregate -> select -> transform -> fit -> backward -> collinearity -> diagnostics

Design:
  - Conservative: stops on first error (no retries)
  - Produces data_manifest.json listing produced artifacts (sha1 + size)
  - Logs each stage with timings
"""

from __future__ import annotations
import argparse
import hashlib
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from lifeexp.data.aggregate import aggregate_indicators
from lifeexp.data.generate_metadata import make_metadata_card
from lifeexp.data.load_indicators import load_long
from lifeexp.data.select_features import schema_manifest, select_features
from lifeexp.data.transforms import apply_skew_transforms, export_top_correlations, normalize
from lifeexp.model import utils as mutils
from lifeexp.model.collinearity import PruneResult, prune_collinear, vif_table
from lifeexp.model.diagnostics import residual_frame, residual_summary
from lifeexp.model.model_defs import PredictorSpec, parse_predictor_specs
from lifeexp.model.selection import SelectionResult, backward_eliminate
from lifeexp.model.train import FittedModel, fit_ols
from lifeexp.utils.config import DEFAULT_CONFIG, load_config, resolve_years
from lifeexp.utils.data_registry import record_artifact

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
LOG = logging.getLogger(__name__)

STAGES = ["load", "aggregate", "select", "transform", "fit", "backward", "collinearity", "diagnostics"]
START_POINTS = ("load", "transform")


@dataclass
class PipelineRun:
    matrix: Optional[pd.DataFrame] = None
    features: Optional[pd.DataFrame] = None
    transformed: Optional[pd.DataFrame] = None
    full_model: Optional[FittedModel] = None
    selection: Optional[SelectionResult] = None
    pruning: Optional[PruneResult] = None
    residuals: Optional[pd.DataFrame] = None
    residual_stats: Dict[str, Any] = field(default_factory=dict)
    produced: List[Path] = field(default_factory=list)

    @property
    def final_model(self) -> Optional[FittedModel]:
        return self.pruning.model if self.pruning is not None else None


def sha1(path: Path) -> str:
    h = hashlib.sha1()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def build_manifest(paths: List[Path]) -> dict:
    manifest = {"generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()), "files": {}}
    for p in paths:
        if p.exists():
            manifest["files"][str(p)] = {"sha1": sha1(p), "size": p.stat().st_size}
    return manifest


def predictor_specs_from_config(cfg: Dict[str, Any]) -> List[PredictorSpec]:
    """Configured predictors, or every indicator alias except the target."""
    target = cfg["target"]["name"]
    raw = cfg.get("predictors") or [a for a in cfg["indicators"] if a != target]
    specs = parse_predictor_specs(raw)
    method = cfg.get("normalization", "minmax")
    linked = [s.term for s in specs if s.link != "identity"]
    # sqrt links are only defined on [0, 1]
    if method != "minmax" and linked:
        raise ValueError(
            f"normalization '{method}' does not keep inputs in [0, 1]; "
            f"use minmax or identity links for {linked}"
        )
    return specs


class _Stage:
    """Context manager that logs a stage header and its duration."""

    def __init__(self, name: str):
        self.name = name

    def __enter__(self):
        LOG.info("=== Stage: %s ===", self.name)
        self.t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            LOG.info("Stage %s finished in %.2fs", self.name, time.perf_counter() - self.t0)
        return False


def run_pipeline(cfg: Dict[str, Any], data_path: Optional[Path] = None, start_at: str = "load") -> PipelineRun:
    """Run every stage and return the in-memory results."""
    if start_at not in START_POINTS:
        raise ValueError(f"start_at must be one of {START_POINTS}, got '{start_at}'")

    out = cfg["outputs"]
    interim = Path(out["interim_dir"])
    processed = Path(out["processed_dir"])
    reports = Path(out["reports_dir"])
    models = Path(out["models_dir"])
    sources_file = Path(out["sources_file"])
    for d in (interim, processed, reports, models):
        d.mkdir(parents=True, exist_ok=True)

    indicators: Dict[str, str] = dict(cfg["indicators"])
    target = cfg["target"]["name"]
    if target not in indicators:
        raise ValueError(f"Target alias '{target}' is not one of the configured indicators")
    specs = predictor_specs_from_config(cfg)
    tcfg = cfg["transforms"]
    run = PipelineRun()

    def _keep(path: Path, canonical_id: str) -> None:
        run.produced.append(path)
        record_artifact(path, canonical_id=canonical_id, sources_file=sources_file)

    mutils.save_config_snapshot(cfg, reports / "model_metadata.json")

    features_path = processed / "features.csv"
    if start_at == "load":
        raw = data_path or cfg["data"].get("raw_path")
        if not raw:
            raise ValueError("No dataset path given (--data or data.raw_path).")
        raw_path = Path(raw)
        with _Stage("load"):
            df_long = load_long(raw_path, skiprows=int(cfg["data"]["skiprows"]), encoding=cfg["data"]["encoding"])
            long_path = interim / "indicators_long.csv"
            df_long.to_csv(long_path, index=False)
            _keep(long_path, "indicators_long")

        with _Stage("aggregate"):
            run.matrix = aggregate_indicators(df_long, resolve_years(cfg["years"]))
            _keep(mutils.write_checkpoint(run.matrix, interim / "country_indicator_matrix.csv"), "country_indicator_matrix")

        with _Stage("select"):
            run.features = select_features(run.matrix, indicators)
            _keep(mutils.write_checkpoint(run.features, features_path), "features")
            mutils.save_json(schema_manifest(run.features, indicators), processed / "features_schema.json")
    else:
        LOG.info("Starting from checkpoint %s", features_path)
        run.features = mutils.read_checkpoint(features_path)

    card = make_metadata_card(
        indicators, run.matrix, tcfg["right_skewed"], tcfg["left_skewed"],
        display_names=cfg.get("display_names"), target=target,
    )
    card_path = reports / "variable_card.csv"
    card.to_csv(card_path, index=False)
    run.produced.append(card_path)

    with _Stage("transform"):
        skewed = apply_skew_transforms(
            run.features, tcfg["right_skewed"], tcfg["left_skewed"], offset=float(tcfg["offset"]),
        )
        run.transformed, params = normalize(skewed, method=cfg["normalization"])
        _keep(mutils.write_checkpoint(run.transformed, processed / "features_transformed.csv"), "features_transformed")
        params.to_frame().to_csv(processed / "normalization_params.csv")
        corr_path = reports / "top_correlations.csv"
        export_top_correlations(run.transformed).to_csv(corr_path, index=False)
        run.produced.extend([processed / "normalization_params.csv", corr_path])

    with _Stage("fit"):
        run.full_model = fit_ols(run.transformed, target, specs)
        mutils.write_text(run.full_model.results.summary().as_text(), reports / "ols_full_summary.txt")
        run.produced.append(reports / "ols_full_summary.txt")

    min_improvement = float(cfg["selection"]["min_improvement"])
    with _Stage("backward"):
        run.selection = backward_eliminate(run.transformed, target, specs, min_improvement=min_improvement)
        run.selection.steps_frame().to_csv(reports / "selection_steps.csv", index=False)
        run.produced.append(reports / "selection_steps.csv")

    with _Stage("collinearity"):
        ccfg = cfg["collinearity"]
        run.pruning = prune_collinear(
            run.transformed, target, run.selection.model.specs,
            threshold=float(ccfg["vif_threshold"]),
            reselect=True,
            min_improvement=min_improvement,
            advisory_threshold=ccfg.get("advisory_threshold"),
        )
        vif_table(run.pruning.vif).to_csv(reports / "vif.csv", index=False)
        run.pruning.dropped_frame().to_csv(reports / "vif_dropped.csv", index=False)
        final = run.pruning.model
        coef = pd.concat([run.full_model.coef_table("OLS_full"), final.coef_table("OLS_final")], ignore_index=True)
        coef.to_csv(reports / "coef_table.csv", index=False)
        mutils.write_text(final.results.summary().as_text(), reports / "ols_summary.txt")
        mutils.save_json(
            {"full": run.full_model.fit_stats(), "final": final.fit_stats(), "final_terms": final.terms},
            reports / "fit_stats.json",
        )
        model_path = mutils.save_model(final.results, models / "final_ols.joblib")
        run.produced.extend([
            reports / "vif.csv", reports / "vif_dropped.csv", reports / "coef_table.csv",
            reports / "ols_summary.txt", reports / "fit_stats.json", model_path,
        ])

    with _Stage("diagnostics"):
        run.residuals = residual_frame(run.pruning.model)
        run.residual_stats = residual_summary(run.pruning.model)
        _keep(mutils.write_checkpoint(run.residuals, reports / "residuals.csv"), "residuals")
        mutils.save_json(run.residual_stats, reports / "residual_summary.json")
        run.produced.append(reports / "residual_summary.json")

    manifest_path = mutils.save_json(build_manifest(run.produced), reports / "data_manifest.json")
    LOG.info("Wrote manifest -> %s", manifest_path)
    LOG.info("Final model terms: %s", run.pruning.model.terms)
    return run


def parse_args(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(prog="build_pipeline", description="Life expectancy indicator regression pipeline")
    parser.add_argument("--config", type=str, default=str(DEFAULT_CONFIG), help="Path to YAML/JSON config")
    parser.add_argument("--data", type=str, default=None, help="Indicator CSV (overrides data.raw_path)")
    parser.add_argument("--skiprows", type=int, default=None, help="Lines before the data region (overrides data.skiprows)")
    parser.add_argument("--start-at", type=str, default="load", choices=START_POINTS,
                        help="'transform' reuses the features checkpoint instead of reloading the raw file")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        cfg = load_config(Path(args.config))
        if args.skiprows is not None:
            cfg["data"]["skiprows"] = args.skiprows
        LOG.info("Pipeline start. Stages: %s", STAGES)
        run_pipeline(cfg, data_path=Path(args.data) if args.data else None, start_at=args.start_at)
        LOG.info("Pipeline finished successfully.")
    except Exception as e:
        LOG.exception("Pipeline failed: %s", e)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
