"""Core utilities and shared infrastructure.

- config: Configuration loading and validation
- constants: Named constants, polling cadences, API paths
- logging: Logging setup for the CLI
- exceptions: Custom exception hierarchy
"""
