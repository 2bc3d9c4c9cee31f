"""Configuration package (Facade).

This package acts as a small *Facade* over the underlying configuration modules.
Callers import config types from a single, stable path instead of the module
that happens to define them:

	from app.services.config import CodeArtifactConfig
"""

from app.services.config.codeartifact_config import CodeArtifactConfig

__all__ = ["CodeArtifactConfig"]
