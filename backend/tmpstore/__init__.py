"""Short-lived blob storage over HTTP."""
