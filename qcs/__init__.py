"""
QCS - Quick Crash Symbolicator.

Fetches the debug-symbol artifact for the exact build that produced a crash
report, caches it locally and runs the external symbolizers over it.
"""

__version__ = "0.1.0"
