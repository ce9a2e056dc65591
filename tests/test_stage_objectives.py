import sys

import numpy as np
import pytest

from paramtune.configs import DeepLocalizerPaths, ObjectiveConfig
from paramtune.evaluation.corpus import Corpus
from paramtune.evaluation.results import DecodeOutcome, DetectionOutcome
from paramtune.evaluation.scoring import detection_score
from paramtune.stages.detection import DETECTION_DIMENSIONS, LOCALIZER, PREPROCESSOR, DetectionObjective
from paramtune.stages.grid_fit import GRID_FIT_DIMENSIONS, GridFitObjective
from paramtune.stages.protocols import DECODE, DETECTION, GRID_FIT, SHAPE_FIT
from paramtune.stages.settings import TypedSettings
from paramtune.stages.shape_fit import SHAPE_FIT_DIMENSIONS, ShapeFitObjective


def detection_query(objective, value=0.5, **overrides):
    query = np.full(objective.dimension_count, value)
    for name, raw in overrides.items():
        query[objective.space.index_of(name)] = raw
    return query


class TestDetectionObjective:

    def test_default_dimensions(self, make_corpus, make_pipeline):
        objective = DetectionObjective(make_corpus(), make_pipeline())

        assert objective.dimension_count == DETECTION_DIMENSIONS
        assert objective.space.frozen

    def test_deep_localizer_adds_a_dimension_and_fixed_settings(self, make_corpus, make_pipeline):
        paths = DeepLocalizerPaths(model_path="model.bin", param_path="params.json")
        objective = DetectionObjective(make_corpus(), make_pipeline(), deep_localizer=paths)

        assert objective.dimension_count == DETECTION_DIMENSIONS + 1
        localizer = objective.base_settings[LOCALIZER]
        assert localizer["deeplocalizer_filter"] is True
        assert localizer["deeplocalizer_model_file"] == "model.bin"
        assert localizer["tag_size"] == 100

    def test_perfect_detections_score_zero(self, make_corpus, make_pipeline):
        objective = DetectionObjective(make_corpus(), make_pipeline())

        # min_num_pixels maps to 101, the fake localizer then reports no spurious detection
        assert objective.evaluate(detection_query(objective, 0.5)) == pytest.approx(0.0)

    def test_spurious_detections_cost_precision(self, make_corpus, make_pipeline):
        objective = DetectionObjective(make_corpus(), make_pipeline())
        expected = detection_score(num_ground_truth=2, num_true_positives=2, num_false_positives=1, beta=2.0)

        value = objective(detection_query(objective, 0.0))

        assert value == pytest.approx(1.0 - expected.score)
        assert objective.history[-1][1] == value

    def test_infeasible_query_is_rejected_without_running_the_pipeline(self, make_corpus, make_pipeline):
        pipeline = make_pipeline()
        objective = DetectionObjective(make_corpus(), pipeline)

        value = objective.evaluate(detection_query(objective, min_num_pixels=1.0, max_num_pixels=0.0))

        assert value == 1.0
        assert pipeline.created["localizer"][0].processed == []

    def test_every_evaluation_reloads_settings(self, make_corpus, make_pipeline):
        pipeline = make_pipeline()
        objective = DetectionObjective(make_corpus(), pipeline)

        objective.evaluate(detection_query(objective, 0.2))
        objective.evaluate(detection_query(objective, 0.8))

        localizer = pipeline.created["localizer"][0]
        assert localizer.load_count == 2
        assert localizer.settings["binary_threshold"] == 42

    def test_fixed_preprocessor_switches_are_set(self, make_corpus, make_pipeline):
        pipeline = make_pipeline()
        objective = DetectionObjective(make_corpus(), pipeline)

        objective.evaluate(detection_query(objective))

        preprocessor = pipeline.created["preprocessor"][0]
        assert preprocessor.settings["comb_enabled"] is True
        assert preprocessor.settings["honey_enabled"] is True

    def test_outcome_for_best_point(self, make_corpus, make_pipeline):
        objective = DetectionObjective(make_corpus(), make_pipeline())

        outcome = objective.outcome_for(detection_query(objective, 0.5))

        assert isinstance(outcome, DetectionOutcome)
        assert outcome.result.score == pytest.approx(1.0)
        assert set(outcome.settings) == {PREPROCESSOR, LOCALIZER}
        assert outcome.settings[LOCALIZER]["min_num_pixels"] == 101

    def test_outcome_for_loaded_settings(self, make_corpus, make_pipeline):
        objective = DetectionObjective(make_corpus(), make_pipeline())
        loaded = {LOCALIZER: TypedSettings(section=LOCALIZER, values={"min_num_pixels": 150})}

        outcome = objective.outcome_for_settings(loaded)

        assert outcome.result.score == pytest.approx(1.0)
        assert outcome.settings[PREPROCESSOR]["comb_enabled"] is True

    def test_parallel_evaluation_matches_serial(self, make_corpus, make_pipeline):
        corpus = make_corpus(num_files=3, frames=2)
        serial = DetectionObjective(corpus, make_pipeline())
        pipeline = make_pipeline()
        parallel = DetectionObjective(corpus, pipeline, config=ObjectiveConfig(max_workers=3))
        query = detection_query(serial, 0.1)

        assert parallel.evaluate(query) == pytest.approx(serial.evaluate(query))
        assert len(pipeline.created["localizer"]) == 3

    def test_empty_corpus_is_rejected(self, make_pipeline):
        with pytest.raises(ValueError):
            DetectionObjective(Corpus([], {}), make_pipeline())

    def test_unknown_base_settings_section_is_rejected(self, make_corpus, make_pipeline):
        with pytest.raises(KeyError):
            DetectionObjective(
                make_corpus(),
                make_pipeline(),
                base_settings={"decoder": TypedSettings(section="decoder")}
            )


class TestShapeFitObjective:

    @staticmethod
    def drop_spurious(settings, detections):
        if settings["threshold_vote"] > 950:
            while False in detections:
                detections.remove(False)
        return detections

    def test_scores_with_precision_weighted_fscore(self, make_corpus, make_pipeline):
        corpus = make_corpus()
        detections = {path: [True, False] for path in corpus.image_paths()}
        objective = ShapeFitObjective(corpus, make_pipeline(shape_fitter=self.drop_spurious), detections)
        query = np.full(SHAPE_FIT_DIMENSIONS, 0.0)

        noisy = objective.evaluate(query)
        query[objective.space.index_of("threshold_vote")] = 1.0
        clean = objective.evaluate(query)

        assert noisy == pytest.approx(1.0 - detection_score(2, 1, 1, 0.5).score)
        assert clean == pytest.approx(1.0 - detection_score(2, 1, 0, 0.5).score)

    def test_upstream_detections_are_not_modified(self, make_corpus, make_pipeline):
        corpus = make_corpus(num_files=1, frames=1)
        detections = {path: [True, False] for path in corpus.image_paths()}
        objective = ShapeFitObjective(corpus, make_pipeline(shape_fitter=self.drop_spurious), detections)

        objective.evaluate(np.ones(SHAPE_FIT_DIMENSIONS))

        assert list(detections.values()) == [[True, False]]

    def test_detection_and_shape_fit_are_evaluated_with_the_frame_index(self, make_corpus, make_pipeline):
        corpus = make_corpus(num_files=1, frames=2)
        detections = {path: [True] for path in corpus.image_paths()}
        objective = ShapeFitObjective(corpus, make_pipeline(), detections)

        objective.evaluate(np.full(SHAPE_FIT_DIMENSIONS, 0.5))

        assert corpus.groups[0].evaluator.calls == [
            (DETECTION, 0), (SHAPE_FIT, 0), (DETECTION, 1), (SHAPE_FIT, 1)
        ]

    def test_ordering_rules(self, make_corpus, make_pipeline):
        corpus = make_corpus()
        objective = ShapeFitObjective(corpus, make_pipeline(), {path: [] for path in corpus.image_paths()})

        assert objective.guard.violations({
            "canny_mean_min": 12, "canny_mean_max": 13,
            "min_major_axis": 45, "max_major_axis": 46,
            "min_minor_axis": 50, "max_minor_axis": 46,
        }) == ["min_minor_axis <= max_minor_axis"]

    def test_missing_upstream_detections_raise(self, make_corpus, make_pipeline):
        with pytest.raises(KeyError):
            ShapeFitObjective(make_corpus(), make_pipeline(), {})


class TestGridFitObjective:

    def test_decode_distance_is_the_objective(self, make_corpus, make_pipeline):
        corpus = make_corpus()
        shape_fits = {path: [True] for path in corpus.image_paths()}
        objective = GridFitObjective(corpus, make_pipeline(decoder=lambda settings, grids: 0.25), shape_fits)

        assert objective.dimension_count == GRID_FIT_DIMENSIONS
        assert objective.evaluate(np.full(GRID_FIT_DIMENSIONS, 0.5)) == pytest.approx(0.25)

    def test_frames_without_decoded_matches_count_as_worst(self, make_corpus, make_pipeline):
        corpus = make_corpus(num_files=1, frames=2)
        shape_fits = {path: [True] for path in corpus.image_paths()}
        objective = GridFitObjective(corpus, make_pipeline(decoder=lambda settings, grids: None), shape_fits)

        outcome = objective.outcome_for(np.zeros(GRID_FIT_DIMENSIONS))

        assert isinstance(outcome, DecodeOutcome)
        assert outcome.result.distance == 1.0

    def test_block_size_is_odd(self, make_corpus, make_pipeline):
        corpus = make_corpus(num_files=1, frames=1)
        objective = GridFitObjective(corpus, make_pipeline(), {path: [True] for path in corpus.image_paths()})

        for raw in np.linspace(0, 1, 21):
            settings = objective.settings_for(np.full(GRID_FIT_DIMENSIONS, raw))
            assert settings["grid_fitter"]["adaptive_block_size"] % 2 == 1

    def test_all_stages_are_evaluated_in_order(self, make_corpus, make_pipeline):
        corpus = make_corpus(num_files=1, frames=1)
        objective = GridFitObjective(corpus, make_pipeline(), {path: [True] for path in corpus.image_paths()})

        objective.evaluate(np.full(GRID_FIT_DIMENSIONS, 0.5))

        assert corpus.groups[0].evaluator.calls == [(DETECTION, 0), (SHAPE_FIT, 0), (GRID_FIT, 0), (DECODE, 0)]

    def test_worst_value(self):
        assert GridFitObjective.worst_value == sys.float_info.max
