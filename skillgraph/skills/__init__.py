"""Catalog entries, graph and workflow models."""
