"""
Trellis - task tracker with a dependency graph engine.
"""

__version__ = "0.1.0"
