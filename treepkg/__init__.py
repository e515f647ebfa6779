"""treepkg — package a directory tree and keep installed copies in sync.

A package is a tar archive carrying the selected files plus a small
manifest (checksums table, version record, metadata). Installing it leaves
that manifest in the target directory, which is all later commands need to
tell whether the tree has drifted from what was installed.
"""

__version__ = "0.3.1"
