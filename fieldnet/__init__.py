"""Field network configuration for competition slots."""
