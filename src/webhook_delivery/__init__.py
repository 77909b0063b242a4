"""Webhook delivery service: signed, retried, non-blocking event fan-out."""
