"""Sync orchestration: chunk streams, the chunk pipeline and the syncer.

Import submodules directly (``docsync.platform.sync.syncer``); this package
does not re-export them so connectors can import the stream without pulling
in the syncer.
"""
