"""Configuration models and loader for the provisioner."""
