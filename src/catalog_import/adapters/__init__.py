"""Adapters implementing the pipeline ports."""
