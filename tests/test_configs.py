import pytest
from pydantic import ValidationError

from paramtune.configs import ObjectiveConfig, OptimizerConfig, TuningConfig


def test_optimizer_defaults():
    config = OptimizerConfig()

    assert config.total_trials == 600
    assert config.sampler == "tpe"


def test_optimizer_rejects_unknown_fields_and_samplers():
    with pytest.raises(ValidationError):
        OptimizerConfig(n_trials=10)
    with pytest.raises(ValidationError):
        OptimizerConfig(sampler="grid")


def test_betas_keep_their_direction():
    with pytest.raises(ValidationError):
        ObjectiveConfig(detection_beta=0.5)
    with pytest.raises(ValidationError):
        ObjectiveConfig(shape_fit_beta=2.0)


def test_factory_paths_need_an_attribute(tmp_path):
    with pytest.raises(ValidationError):
        TuningConfig(data_folder=tmp_path, pipeline_factory="mypipeline.factories")

    config = TuningConfig(data_folder=tmp_path, pipeline_factory="mypipeline.factories:PIPELINE")
    assert config.objective.max_workers == 1
