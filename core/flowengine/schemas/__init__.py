"""Schema definitions for backend configs."""

from flowengine.schemas.backend_config import AuthType, BackendConfig, Header, ProxyConfig

__all__ = ["AuthType", "BackendConfig", "Header", "ProxyConfig"]
