"""
txgraph: an in-memory financial transaction network with query, statistics
and graph analytics layers.
"""

__version__ = '0.1.0'
