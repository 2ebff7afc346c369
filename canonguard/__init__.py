"""Governance and content-integrity engine for canonical documents."""

__version__ = "1.0.0"
