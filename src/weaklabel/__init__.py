"""
WeakLabel: programmatic weak supervision for document corpora.

Applies noisy, rule-based labeling functions to documents, learns how
much to trust each of them with an iterative label model, and emits
probabilistic multi-label annotations with coverage and conflict
diagnostics.
"""

__version__ = "0.1.0"

# Foundational settings
from .config import Settings

# Core services and configs
from .core import (
    ConvergenceController,
    GenerativeLabelModel,
    LabelModelConfig,
    OutputAssembler,
    OutputConfig,
    PopulationConfig,
    VoteAnalyzer,
    VoteMatrix,
    WeakSupervisionService,
    load_documents,
    load_labeling_functions,
)

# Data models
from .models import Document, LabelVote, WeakLabel, WeakSupervisionStats

__all__ = [
    "Settings",
    "WeakSupervisionService",
    "VoteMatrix",
    "GenerativeLabelModel",
    "ConvergenceController",
    "VoteAnalyzer",
    "OutputAssembler",
    "LabelModelConfig",
    "PopulationConfig",
    "OutputConfig",
    "Document",
    "LabelVote",
    "WeakLabel",
    "WeakSupervisionStats",
    "load_documents",
    "load_labeling_functions",
]
