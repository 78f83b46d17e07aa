# [Track P: Progressive Enhancement]
"""
Track P — Layered Enhancement Pipeline

Applies a fixed sequence of enhancement layers (structure, context,
examples, constraints, success criteria), each gated by skip conditions
and a validator, one oracle call per applied layer.

Files in this package may import from:
  - refiner.*       (config, schemas, services, analysis tools)
  - tracks.shared.* (modes, call ledger)
  - standard library / third-party packages

Files in this package must NOT import from:
  - tracks.self_refine.*
"""
