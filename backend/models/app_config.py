from typing import Optional

from pydantic import BaseModel, ConfigDict


class ProxyConfig(BaseModel):
    """The ``proxy`` section of the persisted app config.

    Only ``enable_logging`` is interpreted here; the rest of the section
    belongs to the proxy engine and must survive a load/save round trip.
    """
    model_config = ConfigDict(extra="allow")

    enable_logging: bool = False


class AppConfig(BaseModel):
    """Persisted application configuration (opaque apart from ``proxy``).

    ``proxy`` is None when the stored config has no such section yet.
    """
    model_config = ConfigDict(extra="allow")

    proxy: Optional[ProxyConfig] = None
