"""
Simulated Crypto Trading Platform.

An asynchronous backend that streams live crypto prices to connected
clients and simulates trading bots and arbitrage positions against
paper accounts.
"""

__version__ = "1.0.0"
__author__ = "Tim"
