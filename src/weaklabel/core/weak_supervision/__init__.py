"""
Weak Supervision module for programmatic labeling.

This module aggregates votes from noisy labeling functions into
probabilistic training labels with an iterative weighted-voting label
model, and reports coverage, conflict and agreement diagnostics.
"""

from .errors import (
    DegenerateCorpusError,
    FrozenVoteMatrixError,
    IncompleteVoteMatrixError,
    LabelingFunctionFailure,
    MalformedVote,
    WeakSupervisionError,
)
from .vote_matrix import ABSTAIN, Vote, VoteArrays, VoteMatrix
from .labeling_functions import (
    FunctionLabelingFunction,
    KeywordLabelingFunction,
    LabelingFunction,
    LabelingFunctionRegistry,
    LengthLabelingFunction,
    RegexLabelingFunction,
    create_keyword_lf,
    create_length_lf,
    create_regex_lf,
    labeling_function,
)
from .population import (
    EvaluationOutcome,
    LabelingFunctionAdapter,
    PopulationReport,
    VoteMatrixBuilder,
    apply_labeling_functions,
)
from .label_model import GenerativeLabelModel, ModelParameters
from .trainer import ConvergenceController, TrainingResult, TrainingState
from .analysis import VoteAnalyzer
from .assembler import OutputAssembler
from .service import WeakSupervisionResult, WeakSupervisionService

__all__ = [
    "ABSTAIN",
    "Vote",
    "VoteArrays",
    "VoteMatrix",
    "LabelingFunction",
    "FunctionLabelingFunction",
    "KeywordLabelingFunction",
    "RegexLabelingFunction",
    "LengthLabelingFunction",
    "LabelingFunctionRegistry",
    "create_keyword_lf",
    "create_regex_lf",
    "create_length_lf",
    "labeling_function",
    "LabelingFunctionAdapter",
    "EvaluationOutcome",
    "PopulationReport",
    "VoteMatrixBuilder",
    "apply_labeling_functions",
    "GenerativeLabelModel",
    "ModelParameters",
    "ConvergenceController",
    "TrainingResult",
    "TrainingState",
    "VoteAnalyzer",
    "OutputAssembler",
    "WeakSupervisionService",
    "WeakSupervisionResult",
    "WeakSupervisionError",
    "DegenerateCorpusError",
    "IncompleteVoteMatrixError",
    "FrozenVoteMatrixError",
    "LabelingFunctionFailure",
    "MalformedVote",
]
