"""
Optional integrations for contextflow.

Each integration imports its third-party SDK lazily:

- contextflow.contrib.anthropic: pip install contextflow[anthropic]
"""
