"""Catalog — the set of package files served from a package directory.

The catalog provides:
- Loading: walk a directory tree, read and verify every package file
- Lookup: find a package by name
- Streaming: read the installer payload of a package
"""
