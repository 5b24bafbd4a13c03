"""
Services module for integrations outside the call path.

Key components:
- outcome_notifier: fire-and-forget delivery of end-of-call reports to a
  webhook over HTTP.
"""
