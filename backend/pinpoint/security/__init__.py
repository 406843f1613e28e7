# Security package init
"""
Pinpoint Backend — Security Primitives
=======================================

    - credentials.py: scrypt credential derivation / verification
    - tokens.py:      signed session tokens keyed by the user's derived key

Neither module touches the database; UserService wires them to the store.
"""
