"""Scan loop orchestration and its published state."""
