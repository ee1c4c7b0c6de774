"""Configuration classes for weak supervision components."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

# Accuracy bounds applied after every M-step.
MIN_ACCURACY = 0.1
MAX_ACCURACY = 0.9


class LabelModelConfig(BaseModel):
    """Configuration for label model training."""

    max_iterations: int = Field(100, gt=0, description="Maximum EM iterations")
    convergence_threshold: float = Field(
        0.001, gt=0, description="Stop once the log-likelihood change falls below this value"
    )
    learning_rate: float = Field(
        0.01, description="Reserved; the closed-form M-step does not use it"
    )
    regularization: float = Field(
        0.01, ge=0, description="Additive smoothing for labeling function accuracies"
    )
    initial_accuracy: float = Field(
        0.7,
        ge=MIN_ACCURACY,
        le=MAX_ACCURACY,
        description="Accuracy assigned to every labeling function before training"
    )
    log_every: int = Field(10, gt=0, description="Log training progress every N iterations")
    timeout_seconds: float | None = Field(
        None, gt=0, description="Wall-clock budget, checked between iterations"
    )


class PopulationConfig(BaseModel):
    """Configuration for applying labeling functions to a corpus."""

    batch_size: int = Field(100, gt=0, description="Documents per progress batch")
    max_workers: int = Field(1, gt=0, description="Threads used to evaluate documents")
    show_progress: bool = Field(True, description="Display a progress bar")


class OutputConfig(BaseModel):
    """Configuration for weak label assembly and diagnostics."""

    distribution_threshold: float = Field(
        0.5,
        ge=0.0,
        le=1.0,
        description="Posterior above which a document counts toward a label's distribution"
    )
    agreement_key_format: str = Field(
        "({first},{second})", description="Key template for pairwise agreement entries"
    )
    write_lf_summary: bool = Field(True, description="Write the per-function summary CSV")

    @model_validator(mode="after")
    def _check_key_format(self) -> OutputConfig:
        if "{first}" not in self.agreement_key_format or "{second}" not in self.agreement_key_format:
            raise ValueError("agreement_key_format must contain {first} and {second}")
        return self
