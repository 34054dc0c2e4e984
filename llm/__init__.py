"""Analysis augmentation over a chat-completion backend."""

from .analysis_client import AnalysisClient, AnalysisResult, build_analysis_client

__all__ = ["AnalysisClient", "AnalysisResult", "build_analysis_client"]
