"""Live audience interaction services: registry, pacing, timers, scoring.

This package contains pure(ish) domain logic that should be imported by
HTTP routes and device view controllers, keeping transport concerns
separated from the session mechanics.
"""
