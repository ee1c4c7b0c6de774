"""
Core components for WeakLabel.

This module provides the foundational base classes, configuration models
and the weak supervision engine.
"""

# Base components
from .base import BatchProcessor, ConfigurableComponent

# Configuration classes
from .configs import LabelModelConfig, OutputConfig, PopulationConfig

# Weak supervision engine
from .weak_supervision import (
    ConvergenceController,
    GenerativeLabelModel,
    OutputAssembler,
    VoteAnalyzer,
    VoteMatrix,
    WeakSupervisionService,
)

# Utilities
from .utils import load_documents, load_labeling_functions

__all__ = [
    "ConfigurableComponent",
    "BatchProcessor",
    "LabelModelConfig",
    "PopulationConfig",
    "OutputConfig",
    "VoteMatrix",
    "GenerativeLabelModel",
    "ConvergenceController",
    "VoteAnalyzer",
    "OutputAssembler",
    "WeakSupervisionService",
    "load_documents",
    "load_labeling_functions",
]
