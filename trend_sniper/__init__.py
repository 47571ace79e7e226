"""
Trend sniper: buys trending Raydium tokens from an alert feed and sells them
at the close of their trend window
"""

__version__ = "0.1.0"
