from .relay_callbacks import RelayCallbackHandler

__all__ = ["RelayCallbackHandler"]
