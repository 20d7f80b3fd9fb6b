from .content_store import (
    ContentSet,
    ContentStore,
    FilesystemContentStore,
    InMemoryContentStore,
    load_content_directory,
)

__all__ = [
    "ContentSet",
    "ContentStore",
    "FilesystemContentStore",
    "InMemoryContentStore",
    "load_content_directory",
]
