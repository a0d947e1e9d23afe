"""Trajectory viewer data orchestration."""
