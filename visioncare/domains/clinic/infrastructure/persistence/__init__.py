"""Clinic persistence."""
