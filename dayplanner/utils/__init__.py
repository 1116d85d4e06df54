"""Utility helpers for Day Planner."""
