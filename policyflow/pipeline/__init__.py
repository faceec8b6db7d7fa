"""Generation and extraction pipelines."""

from .generator import PolicyGenerator, PolicyInput, build_policy
from .extractor import CaseExtractor, CaseExtraction

__all__ = [
    "PolicyGenerator",
    "PolicyInput",
    "build_policy",
    "CaseExtractor",
    "CaseExtraction",
]
