# ico_client/__init__.py
"""Client-side controller for a fixed-supply token sale run by the Solana ICO program."""

__version__ = "0.1.0"
