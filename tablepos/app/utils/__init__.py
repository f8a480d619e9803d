"""Small helpers shared across repositories and routes."""
