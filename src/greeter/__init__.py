"""
Greeter - On-Ledger Greeting Program

A small state-machine program that stores one greeting record per derived
address and lets the record's authority update its message.

Main Components:
- Core: instruction codec, account state model, address derivation, dispatcher
- Runtime: local host runtime used for development and tests
- CLI: client-side helpers for deriving addresses and encoding instructions
"""

__version__ = "0.1.0"
__author__ = "Greeter Development Team"

__all__ = []
