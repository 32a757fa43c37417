"""Upstream price API layer -- metalpriceapi.com integration via httpx."""

from metalproxy.upstream.client import PriceClient
from metalproxy.upstream.metalprice_client import MetalpriceClient

__all__ = ["MetalpriceClient", "PriceClient"]
