"""Relay between a web dashboard and the Mailjet transactional-email API.

This package provides:

- A per-tenant, size-bounded, file-backed history of inbound webhook events
- Idempotent reconciliation of webhook callback registrations
- A stateless relay for send-message requests
- A FastAPI application exposing all of the above

Example:
    Building the application::

        from mailjet_relay.api import create_app
        from mailjet_relay.config_loader import load_config

        config = load_config("./config.json")
        app = create_app(config, events_dir="/var/lib/mailjet-relay")
"""

__version__ = "0.1.0"
