"""Ambient runtime pieces: configuration, logging, exceptions and outbound HTTP."""
