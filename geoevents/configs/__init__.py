"""Settings and YAML configuration."""
