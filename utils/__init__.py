"""Shared helpers: error taxonomy and executable lookup."""
