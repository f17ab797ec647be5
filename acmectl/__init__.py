"""
acmectl - ACME certificate automation agent
"""

__version__ = "0.1.0"
