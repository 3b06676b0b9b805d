# Utilities for the visualization agent
from .document import HistoryEntry, VisualizationDocument, VisualizationKind
from .errors import ErrorCategory, Outcome, PipelineError
from .models import ModelClient
