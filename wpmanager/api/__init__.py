"""HTTP API for WP AI Manager."""
