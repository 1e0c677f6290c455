"""Lecture video → timestamp-grounded knowledge base."""

__version__ = "0.1.0"
