"""Test suite for toolsleuth.

Organized into three categories:

1. core/: Unit tests for core domain logic
   - Minimal dependencies, fast execution
   - Uses in-memory fakes for ports

2. adapters/: Integration tests for adapter implementations
   - Real files and stand-in child processes
   - mitmproxy's own test helpers for the addon

3. fakes/: Port implementations for testing
   - In-memory implementations of every port
   - Used by core unit tests

Modules at this level cover settings, the command line and full runs
against stand-in child processes.
"""
