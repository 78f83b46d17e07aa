# [Shared: Track Utilities]
"""
Shared utilities for the refinement tracks.

This package provides cross-track tools:
  - modes: Named budget configurations, overrides and validation
  - budget: Per-run oracle call ledger and token estimates

Import rules:
  - May import from refiner/ (config, schemas, services)
  - May NOT import from any specific track (self_refine/, progressive/)
  - All tracks may import from here
"""
