"""Core models, errors and logging for nocturne-installer."""
