"""Networks, losses and training loops."""
