"""Mermaid converter HTTP service."""
