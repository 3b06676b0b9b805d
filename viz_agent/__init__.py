"""Visualization agent: format selection, structured generation, document mutation."""
