"""Fake/mock implementations of core ports for testing.

These in-memory implementations allow core domain logic to be tested
without external dependencies:

- FakePreflightPort: Configurable pre-flight outcomes
- FakeInterceptorPort: Simulated proxy process
- FakeClientPort: Captured client launches
- FakeDiagnosisChannel: Scripted channel reads and captured publishes
- FakeResultSinkPort: Captured persisted results
"""

from .channel import FakeDiagnosisChannel
from .client import FakeClientPort
from .interceptor import FakeInterceptorPort
from .preflight import FakePreflightPort
from .results import FakeResultSinkPort

__all__ = [
    "FakeClientPort",
    "FakeDiagnosisChannel",
    "FakeInterceptorPort",
    "FakePreflightPort",
    "FakeResultSinkPort",
]
