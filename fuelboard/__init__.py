"""Core (UI-agnostic) fuel-retail dashboard logic.

This package contains:
- selection normalization and the session-scoped filter store
- query shaping and the HTTP client for the remote metrics API
- the per-consumer fetch orchestrator
- metrics aggregation and display formatting
- value animation and chart series helpers (Altair -> Vega-Lite spec dict)
"""
