#!/usr/bin/env python3
"""
PLS-DA Analysis Runner
======================

Run the full MS/MS PLS-DA workflow on a feature table and a sample sheet.

Pipeline:
1. Load feature matrix (features x samples) and sample annotation
2. Preprocess: missingness filter, half-minimum imputation, log transform,
   median normalization, top-variance feature selection
3. Fit PLS-DA (NIPALS) on all samples and rank features by VIP
4. Leave-one-out (or k-fold) cross-validation for 1..ncomp components
5. Optional label-permutation test
6. Write result tables and a run manifest

Usage:
    # Defaults (2 components, 500 features, LOOCV)
    python scripts/run_plsda.py \
        --matrix data/feature_matrix.csv \
        --annotation data/sample_annotation.csv \
        --out-dir results/

    # From a config file, with a permutation test on 4 threads
    python scripts/run_plsda.py --config configs/default.yaml \
        --matrix data/feature_matrix.csv --annotation data/sample_annotation.csv \
        --permutations 200 --n-jobs 4
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from msplsda import pipeline
from msplsda.data.preprocess import PreprocessConfig
from msplsda.errors import PLSDAError
from msplsda.evaluation.cross_validation import CVScheme
from msplsda.io.tables import read_annotation, read_feature_matrix, write_results
from msplsda.stats.permutation import permutation_test
from msplsda.utils.config_loader import load_config, save_config
from msplsda.utils.logging_utils import log_dict, log_time, setup_logging
from msplsda.utils.manifest import hash_file, write_manifest

logger = logging.getLogger("msplsda.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PLS-DA with LOOCV and VIP ranking for MS/MS feature tables")
    parser.add_argument("--matrix", required=True,
                        help="Feature matrix CSV/TSV (rows = features, columns = samples)")
    parser.add_argument("--annotation", required=True,
                        help="Sample annotation CSV/TSV with SampleID and Condition columns")
    parser.add_argument("--config", default=None, help="YAML config (defaults if omitted)")
    parser.add_argument("--out-dir", default="results", help="Output directory for result tables")
    parser.add_argument("--ncomp", type=int, help="Number of PLS components (overrides config)")
    parser.add_argument("--top-n", type=int, help="Number of VIP-ranked features to export")
    parser.add_argument("--n-jobs", type=int, help="Threads for cross-validation folds")
    parser.add_argument("--permutations", type=int,
                        help="Label permutations for the significance test (0 = skip)")
    parser.add_argument("--sample-col", default="SampleID", help="Sample id column in the annotation")
    parser.add_argument("--class-col", default="Condition", help="Class column in the annotation")
    parser.add_argument("--progress", action="store_true", help="Show progress bars")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Console log level")
    return parser


def _overrides_from_args(args: argparse.Namespace) -> dict:
    overrides = {}
    if args.ncomp is not None:
        overrides["model.n_components"] = args.ncomp
    if args.top_n is not None:
        overrides["output.top_n"] = args.top_n
    if args.n_jobs is not None:
        overrides["cross_validation.n_jobs"] = args.n_jobs
    if args.permutations is not None:
        overrides["permutation.n_permutations"] = args.permutations
    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    out_dir = Path(args.out_dir)
    setup_logging("msplsda", level=args.log_level, log_file=out_dir / "run.log", use_tqdm=args.progress)

    try:
        config = load_config(args.config, overrides=_overrides_from_args(args), freeze=True)
        model_cfg = config.model
        cv_cfg = config.cross_validation
        n_components = model_cfg.n_components

        logger.info("=" * 60)
        logger.info("MS/MS PLS-DA analysis")
        logger.info("=" * 60)

        raw = read_feature_matrix(args.matrix)
        annotation = read_annotation(args.annotation, sample_col=args.sample_col, class_col=args.class_col)

        processed = pipeline.preprocess(raw, PreprocessConfig.from_dict(config.preprocess.to_dict()))
        labels = annotation.labels_for(processed)

        model, vip = pipeline.fit_plsda(
            processed,
            labels,
            n_components,
            scale=model_cfg.scale,
            tol=model_cfg.tol,
            max_iter=model_cfg.max_iter,
        )

        scheme = CVScheme(cv_cfg.kind, cv_cfg.n_folds, cv_cfg.interleaved)
        with log_time(logger, f"Cross-validation ({scheme.kind})"):
            cv = pipeline.cross_validate(
                processed,
                labels,
                n_components,
                scheme=scheme,
                scale=model_cfg.scale,
                tol=model_cfg.tol,
                max_iter=model_cfg.max_iter,
                n_jobs=cv_cfg.n_jobs,
                progress=args.progress,
            )

        permutation = None
        n_permutations = config.permutation.n_permutations
        if n_permutations:
            encoding = pipeline.encode_for_matrix(processed, labels)
            with log_time(logger, f"Permutation test ({n_permutations} permutations)"):
                permutation = permutation_test(
                    processed.samples_by_features(),
                    encoding.indicator,
                    n_components,
                    n_permutations=n_permutations,
                    seed=config.permutation.seed,
                    scheme=scheme,
                    progress=args.progress,
                    scale=model_cfg.scale,
                    tol=model_cfg.tol,
                    max_iter=model_cfg.max_iter,
                    n_jobs=cv_cfg.n_jobs,
                )

        written = write_results(
            out_dir,
            raw,
            processed,
            labels,
            model,
            vip,
            cv=cv,
            permutation=permutation,
            top_n=config.output.top_n,
        )

        results = {
            "n_features_used": processed.n_features,
            "n_samples": processed.n_samples,
            "classes": list(model.classes),
            "cv_accuracy": float(cv.accuracy[-1]),
            "cv_balanced_error_rate": float(cv.balanced_error_rate[-1]),
            "best_n_components": cv.best_n_components(),
            "n_vip_above_1": vip.n_important(),
        }
        if permutation is not None:
            results["permutation_p_value"] = permutation["p_value"]
        log_dict(logger, results, title="Summary")

        save_config(config, out_dir / "config.yaml")
        write_manifest(
            out_dir / "manifest.json",
            config_dict=config.to_dict(),
            cli_args=sys.argv if argv is None else list(argv),
            input_hashes={
                "matrix": hash_file(args.matrix),
                "annotation": hash_file(args.annotation),
            },
            results={**results, "outputs": {k: str(v) for k, v in written.items()}},
        )

        logger.info("=" * 60)
        logger.info(f"✓ Analysis complete, results in {out_dir}")
        logger.info("=" * 60)
        return 0

    except (PLSDAError, FileNotFoundError) as e:
        logger.error(f"Analysis failed: {type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
