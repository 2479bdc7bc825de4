"""Deploy and initialize NEAR FT and NFT contracts through the near CLI."""

__version__ = "0.1.0"
