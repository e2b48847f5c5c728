"""Test suite for the BarryLand client core and reference server."""
