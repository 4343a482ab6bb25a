"""Utility helpers for formatting and structured logging."""
