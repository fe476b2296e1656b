"""Averaged company reputation."""
