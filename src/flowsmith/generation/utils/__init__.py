"""Utility helpers for workflow generation."""
