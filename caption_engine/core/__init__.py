"""
Core modules for Caption Engine.

This package contains plan policy, provider routing, variant ranking,
quota checks and the generation orchestrator.
"""
