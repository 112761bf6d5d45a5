"""Campaign Pipeline - phased multi-agent campaign builder."""

__version__ = "0.1.0"
__author__ = "Campaign Pipeline Contributors"

from .config import Config
from .orchestrator import PipelineOrchestrator, build_orchestrator, default_pipeline
from .state import ResultPersister, RunResult

__all__ = [
    "Config",
    "PipelineOrchestrator",
    "ResultPersister",
    "RunResult",
    "build_orchestrator",
    "default_pipeline",
]
