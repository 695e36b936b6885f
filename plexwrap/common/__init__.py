"""Shared primitives used across Plexwrap modules."""
