"""Core utilities and shared infrastructure.

- config: Pipeline configuration loading and validation
- constants: Named constants and defaults
- exceptions: Custom exception hierarchy
"""
