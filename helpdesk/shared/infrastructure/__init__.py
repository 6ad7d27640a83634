"""
Infrastructure Layer
=====================

Low-level technical concerns shared by all contexts:
- Structured logging
- Keyed asyncio locks
- Grafana metrics export
"""
