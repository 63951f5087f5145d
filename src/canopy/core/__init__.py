"""Core configuration for Canopy."""
