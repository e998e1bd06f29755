"""Skill catalog normalization, relationship graph and workflow assembly."""

__version__ = "0.1.0"
