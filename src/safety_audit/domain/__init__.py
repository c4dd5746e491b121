"""Core entities for the unsafe-code audit."""
