"""Tests for the contracts package (value types and protocols)."""
