"""Markup normalization and plain-text helpers."""
