"""
Command line entry point.

    paramtune DATA --pipeline mypipeline.factories:PIPELINE --evaluator mypipeline.gt:Evaluator
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from paramtune.configs import DeepLocalizerPaths, ObjectiveConfig, OptimizerConfig, TuningConfig
from paramtune.exceptions import EmptyCorpusError, ParamTuneError
from paramtune.io.discovery import TuningTask, discover_task, find_ground_truth_files
from paramtune.optimization.orchestrator import (
    TuningOrchestrator,
    TuningReport,
    import_from_string,
    load_pipeline_factory,
)
from utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

DESCRIPTION = "Tune the parameters of the detection, shape-fit and grid-fit stages against annotated ground truth."


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="paramtune", description=DESCRIPTION)
    ap.add_argument("data", nargs="?", type=Path, help="Folder with ground-truth (.tdat) files and their images")

    ap.add_argument("--n-init-samples", type=int, default=100, help="Initial samples before the model-based search (default: 100)")
    ap.add_argument("--n-iterations", type=int, default=500, help="Model-based iterations after the initial samples (default: 500)")
    ap.add_argument("--n-iter-relearn", type=int, default=25, help="Report the best result every N trials (default: 25)")
    ap.add_argument("--sampler", choices=["tpe", "gp", "random"], default="tpe", help="Optimizer sampler (default: tpe)")
    ap.add_argument("--seed", type=int, default=None, help="Random seed of the optimizer")

    ap.add_argument("--optimize-mean", action="store_true", help="Tune once over all ground-truth files instead of per file")
    ap.add_argument("--workers", type=int, default=1, help="Evaluate ground-truth files in parallel (default: 1)")

    ap.add_argument("--deeplocalizer-model-path", default=None, help="Model file of the learned detection filter")
    ap.add_argument("--deeplocalizer-param-path", default=None, help="Parameter file of the learned detection filter")

    ap.add_argument("--pipeline", default=None, help="'module:attribute' of the PipelineFactory")
    ap.add_argument("--evaluator", default=None, help="'module:attribute' building an evaluator from a ground-truth document")

    ap.add_argument("--no-capture", action="store_true", help="Do not redirect stdout/stderr into the run log")
    ap.add_argument("--log-dir", default="logs", help="Folder of the process log file (default: logs)")
    ap.add_argument("--verbose", "-v", action="store_true", help="Log infeasible queries and worker activity")
    return ap


def config_from_args(args: argparse.Namespace) -> TuningConfig:
    """Validate the parsed arguments into a TuningConfig."""
    deep_localizer = None
    if args.deeplocalizer_model_path or args.deeplocalizer_param_path:
        if not (args.deeplocalizer_model_path and args.deeplocalizer_param_path):
            raise ValueError("Both --deeplocalizer-model-path and --deeplocalizer-param-path are required")
        deep_localizer = DeepLocalizerPaths(
            model_path=args.deeplocalizer_model_path,
            param_path=args.deeplocalizer_param_path
        )

    return TuningConfig(
        data_folder=args.data,
        optimize_mean=args.optimize_mean,
        deep_localizer=deep_localizer,
        optimizer=OptimizerConfig(
            n_init_samples=args.n_init_samples,
            n_iterations=args.n_iterations,
            n_iter_relearn=args.n_iter_relearn,
            sampler=args.sampler,
            seed=args.seed
        ),
        objective=ObjectiveConfig(max_workers=args.workers),
        pipeline_factory=args.pipeline,
        evaluator_factory=args.evaluator
    )


def plan_tasks(config: TuningConfig) -> List[TuningTask]:
    """
    One task over all ground-truth files, or one task per file.

    In per-file mode settings files are read from the ground-truth file's folder,
    and files without any existing image are skipped.
    """
    if config.optimize_mean:
        return [discover_task(config.data_folder)]

    tasks = []
    for ground_truth in find_ground_truth_files(config.data_folder):
        run_name = "_".join(ground_truth.relative_to(config.data_folder).with_suffix("").parts)
        try:
            tasks.append(discover_task(
                config.data_folder,
                [ground_truth],
                run_name=run_name,
                settings_folder=ground_truth.parent
            ))
        except EmptyCorpusError as e:
            logger.warning(f"Skipping {ground_truth}: {e}")
    return tasks


def run(config: TuningConfig, capture_output: bool = True) -> List[TuningReport]:
    """Tune every planned task of a configuration."""
    if config.pipeline_factory is None or config.evaluator_factory is None:
        raise ParamTuneError("Both --pipeline and --evaluator must be given")

    pipeline = load_pipeline_factory(config.pipeline_factory)
    evaluator_factory = import_from_string(config.evaluator_factory)

    tasks = plan_tasks(config)
    if not tasks:
        logger.warning(f"No ground-truth files found in {config.data_folder}")

    reports = []
    for task in tasks:
        orchestrator = TuningOrchestrator(
            task,
            pipeline,
            evaluator_factory,
            optimizer_config=config.optimizer,
            objective_config=config.objective,
            deep_localizer=config.deep_localizer,
            capture_output=capture_output
        )
        reports.append(orchestrator.run())
    return reports


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.data is None:
        print("Input data folder not specified\n")
        parser.print_help()
        return 1
    if not args.data.is_dir():
        print(f"Invalid input data path: {args.data}")
        return 1

    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO, log_dir=args.log_dir, force=True)

    try:
        config = config_from_args(args)
    except (ValidationError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    try:
        reports = run(config, capture_output=not args.no_capture)
    except (ParamTuneError, IOError, ImportError, AttributeError, TypeError, ValueError) as e:
        logger.error(f"Tuning failed: {e}", exc_info=True)
        return 1

    for report in reports:
        logger.info(f"Settings written to {report.output_folder}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
