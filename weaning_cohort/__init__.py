"""Sepsis ventilation-weaning cohort extraction."""

__version__ = "0.1.0"
