"""Metagenome and metavirome joint analysis: reference downloads, CRISPR host matching and viral protein search."""

__version__ = "0.1.0"