"""
contextflow test suite.

Covers the ledgers, truncation, request building, stream coordination,
metrics hooks, terminal filters and the Anthropic transport.
"""
