"""Opik-backed tracing and metric helpers."""
