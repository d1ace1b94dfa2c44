"""
Minimal Recursive Web Crawler

A concurrent, depth-bounded crawler that fetches every reachable URL at most once.
"""

__version__ = "1.0.0"
__description__ = "A concurrent recursive web crawler with a shared visit-state map"
