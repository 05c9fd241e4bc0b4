import logging
from typing import Optional

import httpx

from kutuphane.config import settings

logger = logging.getLogger(__name__)

# httpx başlık değerleri yalnızca ASCII kabul eder
USER_AGENT = f"kutuphane/{settings.app_version}"


class HTTPClient:
    """Bağlantı havuzu ile paylaşılan asenkron HTTP istemcisi"""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        # Daha iyi performans için bağlantı limitleri
        limits = httpx.Limits(
            max_keepalive_connections=20,
            max_connections=100,
            keepalive_expiry=30.0
        )

        # Zaman aşımı yapılandırması
        timeout = httpx.Timeout(
            timeout=10.0,
            connect=5.0,
            read=10.0,
            write=5.0
        )

        self._client = httpx.AsyncClient(
            limits=limits,
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        )

    async def get(self, url: str, **kwargs) -> httpx.Response:
        """Bağlantı havuzu ile asenkron GET isteği"""
        return await self._client.get(url, **kwargs)

    async def close(self):
        """HTTP istemcisini kapat"""
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


# Global HTTP istemci örneği
_global_client: Optional[HTTPClient] = None


async def get_http_client() -> HTTPClient:
    """Global HTTP istemci örneğini al veya oluştur"""
    global _global_client
    if _global_client is None:
        _global_client = HTTPClient()
        logger.debug("Paylaşılan HTTP istemcisi oluşturuldu")
    return _global_client


async def cleanup_http_client():
    """Global HTTP istemcisini temizle"""
    global _global_client
    if _global_client:
        await _global_client.close()
        _global_client = None
