"""
Domain layer for the marker batch job.

This layer contains:
- Data models (root/child records, recipients, chunk and run results)
- Business logic (locator, chunk processor, completion notifier)
- Run orchestration (BatchRunner)
"""
