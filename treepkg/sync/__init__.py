"""Sync — reconcile a package's manifest with a live directory tree.

This package provides:
- Install: lay a package down, refusing to clobber local changes
- Remove: take it back out, best effort, deepest directories last
- Diff: show what changed locally, per path
- Status: classify every recorded or present path
"""
