# [Track S: Self-Refine]
"""
Track S — Critique/Improve Convergence Loop

Repeatedly asks the oracle to critique the current text and to produce an
improved version, until the quality target is reached, gains flatten,
the critique advises stopping, or the call budget runs out.

Files in this package may import from:
  - refiner.*       (config, schemas, services, analysis tools)
  - tracks.shared.* (modes, call ledger)
  - standard library / third-party packages

Files in this package must NOT import from:
  - tracks.progressive.*
"""
