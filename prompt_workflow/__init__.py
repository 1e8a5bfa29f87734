"""
Prompt Workflow Engine

A prompt-chaining workflow engine for LLM chat clients: a small indentation-based
DSL, a dependency-graph parser, and a round-based async scheduler.
"""

__version__ = "1.0.0"
