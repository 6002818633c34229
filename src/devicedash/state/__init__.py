"""State/store layer.

This package holds the producer's authoritative in-memory device list and
the change events every accepted mutation produces.
"""
