"""Audit Rust source trees for uses of unsafe."""
