"""HTTP API for Canopy."""
