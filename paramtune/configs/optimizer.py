from typing import Literal, Optional
from pydantic import BaseModel, Field


class OptimizerConfig(BaseModel):
    """
    Budget and sampler selection for the black-box optimizer.

    Attributes:
        n_init_samples (int): Number of exploratory samples before the surrogate model is used.
        n_iterations (int): Number of model-guided iterations after the initial samples.
        n_iter_relearn (int): Number of trials between two best-so-far progress reports.
        sampler (Literal): 'tpe' or 'gp' (optuna samplers) or 'random' (uniform random search).
        seed (int, optional): Seed for reproducible runs.
    """

    n_init_samples: int = Field(100, ge=1, description="Initial exploratory samples")
    n_iterations: int = Field(500, ge=0, description="Model-guided iterations")
    n_iter_relearn: int = Field(25, ge=1, description="Trials between progress reports")
    sampler: Literal['tpe', 'gp', 'random'] = Field('tpe', description="Sampling strategy")
    seed: Optional[int] = Field(None, description="Random seed")

    class Config:
        extra = "forbid"

    @property
    def total_trials(self) -> int:
        return self.n_init_samples + self.n_iterations
