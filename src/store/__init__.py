"""Relational storage layer.

This module batches projected records and writes them into SQL tables
with duplicate-skipping inserts.
"""
