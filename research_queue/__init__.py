"""
research-queue core package.

Modules
───────
quarters  — quarter tokens: current, parse, previous/next, cache keys
models    — Pydantic data models (Topic, SnapshotDocument, QuarterIndex)
tree      — recursive forest algorithms (find, parent, delete, ancestors, flatten)
store     — SQLite-backed local key-value cache
remote    — read-only snapshot source (http(s) URL or directory)
resolver  — per-quarter resolution: local cache → remote → legacy → empty
exchange  — snapshot export and two-shape import
debounce  — restartable timer coalescing text edits
session   — active quarter + forest + dirty flag, the view layer's entry point
"""
