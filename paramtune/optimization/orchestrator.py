"""
Tuning orchestrator - main entry point of a tuning run.

The orchestrator chains the three stage objectives:
- Detection is tuned (or loaded) first, its best settings fix the detections
- Shape fitting is tuned on those detections, its best settings fix the shapes
- Grid fitting and decoding are tuned on those shapes
After every stage the chosen settings are written to the output folder, a
combined settings.json archives the whole run.
"""

import copy
import importlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from paramtune.configs.objective import ObjectiveConfig
from paramtune.configs.optimizer import OptimizerConfig
from paramtune.configs.tuning import DeepLocalizerPaths
from paramtune.evaluation.corpus import Corpus, ImageReader, read_grayscale
from paramtune.evaluation.results import DecodeOutcome, DetectionOutcome, ShapeFitOutcome, StageOutcome, summary_line
from paramtune.exceptions import EmptyCorpusError
from paramtune.io.discovery import TuningTask
from paramtune.io.log_sink import capture_console
from paramtune.io.settings_store import COMBINED_SETTINGS_FILE, SETTINGS_FILES, load_settings, write_combined, write_settings
from paramtune.stages.base import StageObjective
from paramtune.stages.detection import LOCALIZER, PREPROCESSOR, DetectionObjective
from paramtune.stages.grid_fit import GRID_FITTER, GridFitObjective
from paramtune.stages.protocols import EvaluatorFactory, PipelineFactory
from paramtune.stages.settings import TypedSettings
from paramtune.stages.shape_fit import SHAPE_FITTER, ShapeFitObjective
from utils.logger import get_logger
from .algorithms import BaseOptimizer, build_optimizer

logger = get_logger(__name__)

OptimizerFactory = Callable[[int, OptimizerConfig], BaseOptimizer]


@dataclass
class TuningReport:
    """
    Result of a tuning run.

    Outcomes are None for stages whose settings were loaded instead of tuned.
    """
    output_folder: Path
    settings: Dict[str, TypedSettings] = field(default_factory=dict)
    detection: Optional[DetectionOutcome] = None
    shape_fit: Optional[ShapeFitOutcome] = None
    grid_fit: Optional[DecodeOutcome] = None

    @property
    def outcomes(self) -> List[StageOutcome]:
        """Outcomes of the tuned stages, in stage order."""
        return [o for o in (self.detection, self.shape_fit, self.grid_fit) if o is not None]

    @property
    def tuned_stages(self) -> List[str]:
        return [o.stage for o in self.outcomes]


def import_from_string(path: str) -> Any:
    """
    Resolve a 'package.module:attribute' string.

    Args:
        path: Import path, the attribute part may be dotted

    Returns:
        The referenced object
    """
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Expected 'package.module:attribute', got '{path}'")

    obj = importlib.import_module(module_name)
    for part in attribute.split("."):
        obj = getattr(obj, part)
    return obj


def load_pipeline_factory(path: str) -> PipelineFactory:
    """A PipelineFactory, or a callable returning one, referenced by an import path."""
    obj = import_from_string(path)
    if not isinstance(obj, PipelineFactory) and callable(obj):
        obj = obj()
    if not isinstance(obj, PipelineFactory):
        raise TypeError(f"'{path}' does not provide a PipelineFactory")
    return obj


class TuningOrchestrator:
    """
    Runs the stage-by-stage tuning of one task.

    Stages with settings files in the task are not tuned; their settings are
    loaded and only used to compute the input of the following stages.
    """

    def __init__(
        self,
        task: TuningTask,
        pipeline: PipelineFactory,
        evaluator_factory: EvaluatorFactory,
        optimizer_config: Optional[OptimizerConfig] = None,
        objective_config: Optional[ObjectiveConfig] = None,
        deep_localizer: Optional[DeepLocalizerPaths] = None,
        image_reader: ImageReader = read_grayscale,
        optimizer_factory: OptimizerFactory = build_optimizer,
        capture_output: bool = True
    ):
        """
        Initialize the tuning orchestrator.

        Args:
            task: Discovered corpus, output folder and settings files
            pipeline: Constructors for the pipeline stages
            evaluator_factory: Builds a ground-truth evaluator from a parsed ground-truth file
            optimizer_config: Optimizer budget and sampler
            objective_config: Scoring policy and worker count
            deep_localizer: Enables the learned detection filter
            image_reader: Decodes an image file
            optimizer_factory: Builds the optimizer of each stage
            capture_output: Redirect stdout/stderr into the run log
        """
        self.task = task
        self.pipeline = pipeline
        self.evaluator_factory = evaluator_factory
        self.optimizer_config = optimizer_config or OptimizerConfig()
        self.objective_config = objective_config or ObjectiveConfig()
        self.deep_localizer = deep_localizer
        self.image_reader = image_reader
        self.optimizer_factory = optimizer_factory
        self.capture_output = capture_output

        self._corpus: Optional[Corpus] = None

    def prepare_corpus(self) -> Corpus:
        """
        Load every ground-truth file and image of the task once.

        Returns:
            The cached corpus
        """
        if self._corpus is not None:
            return self._corpus
        if self.task.num_images == 0:
            raise EmptyCorpusError(f"Task of {self.task.output_folder} has no images to tune on")

        logger.info(f"Loading corpus of {self.task.num_images} image(s)...")
        self._corpus = Corpus.load(self.task.images_by_ground_truth, self.evaluator_factory, self.image_reader)
        return self._corpus

    def optimize_stage(self, objective: StageObjective) -> StageOutcome:
        """
        Run an optimizer against a stage objective.

        Returns:
            The stage outcome of the best point found
        """
        optimizer = self.optimizer_factory(objective.dimension_count, self.optimizer_config)
        logger.info(
            f"Tuning {objective.stage}: {objective.dimension_count} parameter(s), "
            f"{optimizer.get_total_trials()} trial(s)"
        )

        best = optimizer.optimize(objective.evaluate)
        outcome = objective.outcome_for(best)

        logger.info(f"Best {objective.stage} result: {summary_line(outcome)}")
        for bag in outcome.settings.values():
            logger.info(bag.describe())
        return outcome

    def _objective_kwargs(self) -> Dict[str, Any]:
        return {"config": self.objective_config}

    def _load_stage_settings(self, objective: StageObjective) -> Dict[str, TypedSettings]:
        settings = {section: bag.copy_settings() for section, bag in objective.base_settings.items()}
        for section in objective.sections:
            load_settings(self.task.settings_files[section], settings[section])
        return settings

    def _write_stage_settings(self, settings: Dict[str, TypedSettings], *sections: str) -> None:
        for section in sections:
            write_settings(settings[section], self.task.output_folder / SETTINGS_FILES[section])

    def tune_detection(self):
        """
        Tune (or load) the preprocessor and localizer settings.

        Returns:
            Tuple of (settings by section, outcome or None when loaded)
        """
        objective = DetectionObjective(
            self.prepare_corpus(),
            self.pipeline,
            deep_localizer=self.deep_localizer,
            **self._objective_kwargs()
        )

        if self.task.has_settings(PREPROCESSOR, LOCALIZER):
            logger.info("Using existing preprocessor and localizer settings")
            settings, outcome = self._load_stage_settings(objective), None
        else:
            outcome = self.optimize_stage(objective)
            settings = outcome.settings

        self._write_stage_settings(settings, PREPROCESSOR, LOCALIZER)
        return settings, outcome

    def compute_detections(self, settings: Dict[str, TypedSettings]) -> Dict[Path, Any]:
        """Detections of every corpus image with fixed detection settings."""
        corpus = self.prepare_corpus()
        preprocessor = self.pipeline.preprocessor()
        localizer = self.pipeline.localizer()
        preprocessor.load_settings(settings[PREPROCESSOR])
        localizer.load_settings(settings[LOCALIZER])

        detections = {}
        for path in corpus.image_paths():
            detections[path] = localizer.process(preprocessor.process(corpus.image(path)))
        return detections

    def tune_shape_fit(self, detections_by_image: Dict[Path, Any]):
        """Tune (or load) the shape fitter on fixed detections."""
        objective = ShapeFitObjective(self.prepare_corpus(), self.pipeline, detections_by_image, **self._objective_kwargs())

        if self.task.has_settings(SHAPE_FITTER):
            logger.info("Using existing shape fitter settings")
            settings, outcome = self._load_stage_settings(objective), None
        else:
            outcome = self.optimize_stage(objective)
            settings = outcome.settings

        self._write_stage_settings(settings, SHAPE_FITTER)
        return settings, outcome

    def compute_shape_fits(self, detections_by_image: Dict[Path, Any], settings: Dict[str, TypedSettings]) -> Dict[Path, Any]:
        """
        Shape-fit output of every corpus image with fixed shape fitter settings.

        Detections without a fitted candidate are dropped when the pipeline provides a filter.
        """
        shape_fitter = self.pipeline.shape_fitter()
        shape_fitter.load_settings(settings[SHAPE_FITTER])

        shape_fits = {}
        for path, detections in detections_by_image.items():
            fitted = shape_fitter.process(copy.deepcopy(detections))
            if self.pipeline.shape_fit_filter is not None:
                fitted = self.pipeline.shape_fit_filter(fitted)
            shape_fits[path] = fitted
        return shape_fits

    def tune_grid_fit(self, shape_fits_by_image: Dict[Path, Any]):
        """Tune (or load) the grid fitter on fixed shape fits."""
        objective = GridFitObjective(self.prepare_corpus(), self.pipeline, shape_fits_by_image, **self._objective_kwargs())

        if self.task.has_settings(GRID_FITTER):
            logger.info("Using existing grid fitter settings")
            settings, outcome = self._load_stage_settings(objective), None
        else:
            outcome = self.optimize_stage(objective)
            settings = outcome.settings

        self._write_stage_settings(settings, GRID_FITTER)
        return settings, outcome

    def run(self) -> TuningReport:
        """
        Tune all stages in order and write their settings.

        Returns:
            TuningReport with the chosen settings and the outcomes of the tuned stages
        """
        report = TuningReport(output_folder=self.task.output_folder)

        with capture_console(self.task.logfile, capture=self.capture_output):
            logger.info(f"Starting tuning run, output folder {self.task.output_folder}")

            detection_settings, report.detection = self.tune_detection()
            detections = self.compute_detections(detection_settings)

            shape_fit_settings, report.shape_fit = self.tune_shape_fit(detections)
            shape_fits = self.compute_shape_fits(detections, shape_fit_settings)

            grid_fit_settings, report.grid_fit = self.tune_grid_fit(shape_fits)

            report.settings = {**detection_settings, **shape_fit_settings, **grid_fit_settings}
            write_combined(report.settings.values(), self.task.output_folder / COMBINED_SETTINGS_FILE)

            logger.info(f"Tuning run finished, tuned stages: {', '.join(report.tuned_stages) or 'none'}")

        return report
