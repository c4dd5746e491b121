"""Parsing, classification, scanning and checkout services."""
