"""Portal adapters - Document authentication implementations."""

from .gnosys import GnosysVerifier

__all__ = ["GnosysVerifier"]
