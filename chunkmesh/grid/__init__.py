"""Grid module exports"""

from .grid_indexer import GridIndexer

__all__ = ['GridIndexer']
