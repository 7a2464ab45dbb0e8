"""
Domain layer for document conversion.
Provides the task store, the conversion pipeline stages and the service
that orchestrates them, independent of the HTTP front-end.
"""

from .errors import (
    ConversionError,
    InvalidTransition,
    SourceExtractionFailure,
    TaskNotFound,
    TaskNotReady,
    ToolExecutionFailure,
    ToolNotFound,
    ToolOutputMissing,
)
from .interfaces import PreparedSource
from .service import ConversionRequest, ConversionService
from .strategy import ConversionStrategy, resolve_strategy
from .tasks import Task, TaskStatus, TaskStore
