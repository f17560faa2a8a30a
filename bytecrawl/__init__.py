"""
bytecrawl

A concurrent single-domain web crawler that counts every byte its HTTP
client writes and reads.
"""

__version__ = "1.0.0"
__description__ = "Politeness-bounded web crawler with exact network byte accounting"
