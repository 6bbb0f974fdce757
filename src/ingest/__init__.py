"""Search ingestion layer.

This module scrolls log documents out of the search backend and drives
the projection and loading stages of a run.
"""
