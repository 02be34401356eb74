# =============================================================================
# survey_core/__init__.py
# Client Satisfaction Survey - Offline Response Queue
# =============================================================================
"""
Core package for the Client Satisfaction Survey kiosk.

Survey responses are delivered to Supabase when the device is online and
queued on the device otherwise; the queue is drained when connectivity
returns.
"""

__version__ = "1.0.0"
