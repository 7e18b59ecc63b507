"""Core configuration, logging and shared models."""
