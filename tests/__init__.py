"""Tests for schemascope."""
