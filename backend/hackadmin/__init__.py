"""Hackathon platform admin backend."""
