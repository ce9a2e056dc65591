import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import numpy as np
import pytest

from paramtune.evaluation.corpus import Corpus
from paramtune.stages.protocols import DECODE, DecodeMatches, PipelineFactory, StageMatches


class FakeStage:
    """Pipeline stage whose output is computed by a plain function of (settings, data)."""

    def __init__(self, fn: Optional[Callable[[Any, Any], Any]] = None):
        self.fn = fn or (lambda settings, data: data)
        self.settings = None
        self.load_count = 0
        self.processed: List[Any] = []

    def load_settings(self, settings):
        self.settings = settings.copy_settings()
        self.load_count += 1

    def process(self, data):
        self.processed.append(data)
        return self.fn(self.settings, data)


class FakeEvaluator:
    """
    Ground-truth evaluator for lists of booleans: True is a matched object, False a spurious one.

    The decoder output is taken as the frame's average normalized distance.
    """

    def __init__(self, document: Dict[str, Any]):
        self.document = document
        self.num_ground_truth = document.get("num_ground_truth", 0)
        self.outputs: Dict[str, Any] = {}
        self.calls: List[tuple] = []
        self.reset_count = 0

    def evaluate_stage(self, stage, frame_index, output):
        self.calls.append((stage, frame_index))
        self.outputs[stage] = output

    def get_stage_results(self, stage):
        output = self.outputs.get(stage) or []
        hits = [item for item in output if item]
        misses = [item for item in output if not item]
        return StageMatches(
            tagged_ground_truth=list(range(self.num_ground_truth)),
            true_positives=hits[:self.num_ground_truth],
            false_positives=misses
        )

    def get_decode_results(self):
        return DecodeMatches(average_normalized_distance=self.outputs.get(DECODE))

    def reset(self):
        self.outputs.clear()
        self.reset_count += 1


def fake_image_reader(path: Path) -> np.ndarray:
    return np.zeros((8, 8), dtype=np.uint8)


def detections_from_settings(settings, image):
    """Two matches per frame plus one spurious detection unless min_num_pixels is large."""
    spurious = [] if settings.get_value("min_num_pixels", 0) > 100 else [False]
    return [True, True] + spurious


@pytest.fixture
def write_ground_truth(tmp_path):
    """Write a ground-truth file listing images and return its path."""

    def _write(name: str, filenames: List[str], num_ground_truth: int = 2, folder: Optional[Path] = None) -> Path:
        folder = folder or tmp_path
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / name
        path.write_text(json.dumps({"num_ground_truth": num_ground_truth, "filenames": filenames}))
        return path

    return _write


@pytest.fixture
def make_corpus(tmp_path, write_ground_truth):
    """Corpus of `num_files` ground-truth files with `frames` images each."""

    def _make(num_files: int = 2, frames: int = 2, num_ground_truth: int = 2) -> Corpus:
        mapping = {}
        for index in range(num_files):
            names = [f"cam{index}_{frame}.png" for frame in range(frames)]
            ground_truth = write_ground_truth(f"gt{index}.tdat", names, num_ground_truth)
            mapping[ground_truth] = [tmp_path / name for name in names]
        return Corpus.load(mapping, FakeEvaluator, image_reader=fake_image_reader)

    return _make


@pytest.fixture
def make_pipeline():
    """PipelineFactory of FakeStages; `created` collects every instance by stage name."""

    def _make(
        localizer=detections_from_settings,
        shape_fitter=None,
        grid_fitter=None,
        decoder=None,
        shape_fit_filter=None
    ):
        created: Dict[str, List[FakeStage]] = {}

        def constructor(name, fn):
            def build():
                stage = FakeStage(fn)
                created.setdefault(name, []).append(stage)
                return stage
            return build

        factory = PipelineFactory(
            preprocessor=constructor("preprocessor", None),
            localizer=constructor("localizer", localizer),
            shape_fitter=constructor("shape_fitter", shape_fitter),
            grid_fitter=constructor("grid_fitter", grid_fitter),
            decoder=constructor("decoder", decoder or (lambda settings, grids: 0.25)),
            shape_fit_filter=shape_fit_filter
        )
        factory.created = created
        return factory

    return _make
