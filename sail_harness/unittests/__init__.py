"""Unit tests for sail_harness."""
