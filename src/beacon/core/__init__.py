"""Core domain models and helpers for Beacon."""
