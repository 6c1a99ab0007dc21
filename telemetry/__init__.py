"""
Retirement event sinks, Prometheus metrics and evidence reports.
"""
