"""Persistence back ends for the tracked PR list."""
