"""
GridStrike - Simultaneous-turn tactical card game engine

Two sides each submit one action per turn on a 3x7 grid. The engine provides:
- The authoritative board model
- Deterministic resolution of each action pair into an animation script
- Per-viewer filtering of stealthed pieces
- A match session that resolves each turn exactly once
"""

__version__ = "0.1.0"
