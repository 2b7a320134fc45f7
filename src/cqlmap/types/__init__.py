"""
Custom types for cqlmap.

This module contains per-operation options and the batch accumulator.
"""

from .options import WriteOptions, ReadOptions, BatchOptions
from .batch import BatchExecutor

__all__ = ['WriteOptions', 'ReadOptions', 'BatchOptions', 'BatchExecutor']
