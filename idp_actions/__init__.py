"""Webhook handlers for ZITADEL Actions v2 targets."""
