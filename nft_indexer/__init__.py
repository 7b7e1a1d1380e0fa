"""
NFT marketplace event indexer.
Projects marketplace contract events into NFT, auction, bid, user,
payment and price history entities.
"""

__version__ = "0.1.0"
