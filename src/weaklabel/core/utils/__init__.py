"""
Utility functions for weak supervision.

This module contains shared helpers for corpus I/O and rule file loading.
"""
from . import data_utils, ruleset_utils
from .data_utils import load_documents, read_jsonl, write_json, write_jsonl
from .ruleset_utils import build_labeling_function, load_labeling_functions

__all__ = [
    "data_utils",
    "ruleset_utils",
    "load_documents",
    "read_jsonl",
    "write_json",
    "write_jsonl",
    "build_labeling_function",
    "load_labeling_functions",
]
