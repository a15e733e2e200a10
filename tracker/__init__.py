"""Tracking engine: store, refresh scheduling and reruns."""
