"""Music news aggregator: RSS/Atom feeds grouped by genre, served as JSON."""

__version__ = "1.0.0"
