"""
Core utilities for Site Updater.

Shared constants, paths, platform detection, file helpers and formatting.
"""
