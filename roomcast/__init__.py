"""roomcast: live room stream provisioning and reconciliation."""

__version__ = "1.0.0"
