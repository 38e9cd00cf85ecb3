"""Core — models, services, configuration and observability."""
