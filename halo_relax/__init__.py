"""Distributed 2-D relaxation solver: each MPI process owns one square tile of the field and exchanges its edges
with its neighbors at every iteration."""

__version__ = "0.1.0"
