"""WP AI Manager: natural-language management of WordPress sites."""

__version__ = "0.1.0"
