"""Rubric scoring, validation and versioned grade history."""
