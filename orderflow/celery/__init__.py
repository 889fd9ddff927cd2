"""
Celery runtime for distributed order confirmation.

Usage:
    celery -A orderflow.celery.app worker -Q orderflow.confirmations
"""
