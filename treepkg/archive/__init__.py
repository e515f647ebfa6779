"""Package archives and where they come from.

- base: the named-entry interface the engine relies on
- tar_archive: the tar implementation packages are stored in
- fetch: open a package from a local path or a URL
"""
