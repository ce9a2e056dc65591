import json
from typing import List

import pytest
from pydantic import TypeAdapter

from paramtune.configs import OptimizerConfig
from paramtune.evaluation.results import DecodeOutcome, DetectionOutcome, ShapeFitOutcome, StageOutcome
from paramtune.exceptions import EmptyCorpusError
from paramtune.io.discovery import TuningTask, discover_task
from paramtune.optimization.orchestrator import (
    TuningOrchestrator,
    import_from_string,
    load_pipeline_factory,
)
from paramtune.stages.protocols import PipelineFactory
from tests.conftest import FakeEvaluator, fake_image_reader

BUDGET = OptimizerConfig(n_init_samples=3, n_iterations=2, n_iter_relearn=1, sampler="random", seed=3)


@pytest.fixture
def data_folder(tmp_path, write_ground_truth):
    write_ground_truth("cam0.tdat", ["a.png", "b.png"])
    write_ground_truth("cam1.tdat", ["c.png"])
    for name in ("a", "b", "c"):
        (tmp_path / f"{name}.jpeg").write_bytes(b"")
    return tmp_path


def make_orchestrator(data_folder, pipeline, **kwargs):
    return TuningOrchestrator(
        discover_task(data_folder),
        pipeline,
        FakeEvaluator,
        optimizer_config=BUDGET,
        image_reader=fake_image_reader,
        capture_output=False,
        **kwargs
    )


def test_run_tunes_all_stages_and_writes_settings(data_folder, make_pipeline):
    report = make_orchestrator(data_folder, make_pipeline()).run()

    assert report.tuned_stages == ["detection", "shape_fit", "grid_fit"]
    for name in ("psettings.json", "lsettings.json", "esettings.json", "gsettings.json", "settings.json"):
        assert (report.output_folder / name).is_file()

    combined = json.loads((report.output_folder / "settings.json").read_text())
    assert set(combined) == {"preprocessor", "localizer", "shape_fitter", "grid_fitter"}
    assert combined["localizer"] == report.detection.settings["localizer"].to_dict()
    assert (report.output_folder / "output.log").is_file()


def test_existing_settings_skip_tuning(data_folder, make_pipeline):
    (data_folder / "psettings.json").write_text(json.dumps({"opt_frame_size": 100}))
    (data_folder / "lsettings.json").write_text(json.dumps({"min_num_pixels": 150, "max_num_pixels": 180}))
    (data_folder / "esettings.json").write_text(json.dumps({"threshold_vote": 700}))

    report = make_orchestrator(data_folder, make_pipeline()).run()

    assert report.tuned_stages == ["grid_fit"]
    assert report.settings["localizer"]["min_num_pixels"] == 150
    assert report.settings["preprocessor"]["comb_enabled"] is True
    written = json.loads((report.output_folder / "esettings.json").read_text())
    assert written == {"threshold_vote": 700}


def test_stage_input_is_computed_with_the_chosen_settings(data_folder, make_pipeline):
    (data_folder / "lsettings.json").write_text(json.dumps({"min_num_pixels": 150}))
    (data_folder / "psettings.json").write_text("{}")
    orchestrator = make_orchestrator(data_folder, make_pipeline(shape_fit_filter=lambda shapes: [s for s in shapes if s]))

    settings, outcome = orchestrator.tune_detection()
    detections = orchestrator.compute_detections(settings)

    assert outcome is None
    assert all(value == [True, True] for value in detections.values())

    noisy = {path: [True, False] for path in detections}
    shape_settings, _ = orchestrator.tune_shape_fit(noisy)
    shape_fits = orchestrator.compute_shape_fits(noisy, shape_settings)

    assert all(value == [True] for value in shape_fits.values())
    assert all(value == [True, False] for value in noisy.values())


def test_corpus_is_loaded_once(data_folder, make_pipeline):
    reads = []

    def reader(path):
        reads.append(path)
        return fake_image_reader(path)

    orchestrator = make_orchestrator(data_folder, make_pipeline())
    orchestrator.image_reader = reader
    orchestrator.run()

    assert len(reads) == 3


def test_optimizer_factory_receives_stage_dimensions(data_folder, make_pipeline):
    from paramtune.optimization.algorithms import build_optimizer

    dimensions = []

    def factory(dimension_count, config):
        dimensions.append(dimension_count)
        return build_optimizer(dimension_count, config)

    make_orchestrator(data_folder, make_pipeline(), optimizer_factory=factory).run()

    assert dimensions == [15, 11, 12]


def test_import_from_string():
    assert import_from_string("json:dumps") is json.dumps
    assert import_from_string("os:path.join") is __import__("os").path.join

    with pytest.raises(ValueError):
        import_from_string("json.dumps")


def test_load_pipeline_factory_accepts_callables():
    factory = load_pipeline_factory("tests.test_cli:build_pipeline")

    assert isinstance(factory, PipelineFactory)

    with pytest.raises(TypeError):
        load_pipeline_factory("os:sep")


def test_stage_outcomes_validate_by_stage_name(data_folder, make_pipeline):
    report = make_orchestrator(data_folder, make_pipeline()).run()

    dumped = [outcome.model_dump() for outcome in report.outcomes]
    restored = TypeAdapter(List[StageOutcome]).validate_python(dumped)

    assert [type(outcome) for outcome in restored] == [DetectionOutcome, ShapeFitOutcome, DecodeOutcome]
    assert restored == report.outcomes


def test_task_without_images_is_rejected_before_tuning(data_folder, make_pipeline):
    task = TuningTask(
        images_by_ground_truth={data_folder / "cam0.tdat": []},
        output_folder=data_folder,
        logfile=data_folder / "output.log"
    )
    orchestrator = TuningOrchestrator(task, make_pipeline(), FakeEvaluator, image_reader=fake_image_reader)

    with pytest.raises(EmptyCorpusError):
        orchestrator.tune_detection()
