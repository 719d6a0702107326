"""
core/__init__.py

Runtime plumbing for LeafScan: configuration, logging, camera capture,
frame throttling, rolling metrics and the live main loop.
"""
