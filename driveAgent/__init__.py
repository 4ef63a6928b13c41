"""Agent core of the cloud drive assistant."""
