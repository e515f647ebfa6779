"""Core model — paths, checksums, file selection, manifests, installed state.

Nothing in here touches the network or a VCS; the packaging and sync
layers build on these pieces.
"""
