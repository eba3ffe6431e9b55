"""Essay evaluation package."""

from .config import ChunkingConfig, CompositePolicy, DispatchConfig, RunConfig

__all__ = ["ChunkingConfig", "CompositePolicy", "DispatchConfig", "RunConfig"]
