"""Markdown prompt templates for workflow generation."""
