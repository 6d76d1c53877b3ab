"""
Dashboard data service for EV charging telemetry.

Polls the charging backend for telemetry history and k-means cluster
assignments, reconciles both datasets into a single snapshot, and serves
chart-ready views to the rendering layer over a small read API.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-001)

TODO:
- None
"""
