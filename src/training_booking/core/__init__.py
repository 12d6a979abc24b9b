"""Core contracts: models, enums, errors, clock, configuration."""
