"""Locate a namespace across GKE clusters and switch the active cluster context to it."""

__version__ = "0.1.0"
