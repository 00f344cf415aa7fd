"""SnapyBara points-of-interest API."""

__all__ = []
