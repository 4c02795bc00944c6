"""
Caption Engine.

Quota-gated orchestration of AI caption generation.
"""

__version__ = "0.1.0"
