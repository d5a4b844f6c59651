"""Retrievers feeding the grounding pipeline."""
