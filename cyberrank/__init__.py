"""Stake-weighted particle ranking and resource investmint accounting."""

__version__ = "0.1.0"