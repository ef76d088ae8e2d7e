"""
flowbench - QPS and bulk throughput benchmarks for rule-engine flow endpoints.

Arrival-rate load phases (warm-up + measurement), k6-style metrics snapshot,
self-contained HTML report with Chart.js, raw JSON dump.
"""

from .exceptions import FlowbenchConfigError, FlowbenchError, FlowbenchReportError, FlowbenchRunnerError

__all__ = [
    "__version__",
    "FlowbenchConfigError",
    "FlowbenchError",
    "FlowbenchReportError",
    "FlowbenchRunnerError",
]

__version__ = "1.0.0"
