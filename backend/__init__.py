"""
HTTP API for the PR CI tracker.

A FastAPI app that owns one tracking engine and exposes its commands
(track, untrack, refresh, rerun, analyze) and its recent events.
"""
