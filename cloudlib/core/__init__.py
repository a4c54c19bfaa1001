"""Configuration for the Cloud Library client."""
