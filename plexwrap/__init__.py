"""Plexwrap: Wrapped report generation jobs, status polling and a gated API."""
