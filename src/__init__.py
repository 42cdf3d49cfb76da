"""
Continuous Crawler

Crawler workers that keep draining a shared URL frontier, classify every
fetch outcome and feed discovered links back into the frontier.
"""

__version__ = "1.0.0"
__description__ = "Continuously running crawler workers over a shared Redis frontier"
