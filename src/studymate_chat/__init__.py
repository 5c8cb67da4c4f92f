"""StudyMate chat package."""

from .config import PipelinePolicy, RetrievalConfig, Settings

__version__ = "0.1.0"

__all__ = ["PipelinePolicy", "RetrievalConfig", "Settings", "__version__"]
