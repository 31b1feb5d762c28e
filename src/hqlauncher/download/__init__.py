"""
Download subsystem: HTTP client, remote manifest, version resolution and the
default depot/archive/mods collaborators.
"""
