"""Frame analysis: the Gemini oracle and the single-flight gate."""

from .oracle import (
    VisionOracle,
    GeminiOracle,
    Verdict,
    OracleUnavailable,
    MalformedVerdict,
    parse_verdict,
)
from .gate import AnalysisGate, build_event, split_reasoning

__all__ = [
    "VisionOracle",
    "GeminiOracle",
    "Verdict",
    "OracleUnavailable",
    "MalformedVerdict",
    "parse_verdict",
    "AnalysisGate",
    "build_event",
    "split_reasoning",
]
