"""Configuration — project.yml loading."""
