"""
txdecode

Resolve raw Ethereum calldata to the function call that produced it, using
the public signature directory first and a contract's verified ABI as a
fallback.
"""

__version__ = "0.1.0"
