"""Prompt grounding: context composition, prompt assembly and orchestration."""
