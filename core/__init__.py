"""
Core pipeline package.

Only the dependency container is imported eagerly; everything else
(orchestrator, generator, formatter) is imported by module path so that
core.schemas and core.errors stay importable from utils/ and memory/
without pulling in the whole pipeline.
"""

from .dependencies import deps

__all__ = ["deps"]
