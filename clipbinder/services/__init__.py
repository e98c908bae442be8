"""Services layer for ClipBinder.

Organized by feature:
- assets: Local asset index and file naming
- matching: Scene-to-asset scoring and assignment (pure, no I/O)
- providers: Stock media and AI image provider clients
- acquisition: Per-scene tier waterfall and the batch orchestrator
"""
