"""Reminder engine (trigger calculator, repository, reconciler, delivery agent).

The HTTP API in ``service.py`` lets the foreground app save settings and push
the current identity to the delivery agent. The agent can also run as a
separate process through ``worker.py``, and Celery beat repairs drift with a
periodic batch reconciliation.
"""
