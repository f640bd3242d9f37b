"""
proxy-vesting

Vesting distribution into anonymous proxy accounts, reconciliation of the
resulting on-chain state, and sudo runtime upgrades for the parachain.
"""

__version__ = "0.1.0"
