import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from curl_cffi.requests import AsyncSession, RequestsError

from streambridge.selection.mime import infer_mime, is_playable_mime, target_mime_for

logger = logging.getLogger(__name__)

CONCURRENT = "concurrent"
SEQUENTIAL = "sequential"


@dataclass
class Probe:
    """Esito della richiesta HEAD su uno stream candidato."""
    stream: Dict[str, Any]
    status_code: Optional[int] = None
    content_type: Optional[str] = None
    error: Optional[str] = None

    @property
    def url(self) -> str:
        # Solo stringhe: l'addon può restituire qualsiasi cosa
        url = self.stream.get("url")
        return url if isinstance(url, str) else ""

    @property
    def reachable(self) -> bool:
        return self.error is None and self.status_code is not None and 200 <= self.status_code < 300


class StreamSelector:
    """
    Sceglie il primo stream utilizzabile di una lista, rispettando l'ordine dell'addon.

    Uno stream è utilizzabile se la HEAD risponde 2xx e il tipo MIME ricavato
    (vedi mime.MIME_STRATEGIES) coincide con quello del formato richiesto,
    oppure, senza formato, se è un video o una playlist di streaming.

    strategy:
      - "concurrent": tutte le HEAD partono insieme (al massimo `concurrency` alla volta),
        si attende l'esito di tutte e poi si sceglie il primo valido in ordine.
      - "sequential": una HEAD alla volta, ci si ferma al primo valido.
    """

    def __init__(self, client: AsyncSession, timeout: float = 5.0,
                 strategy: str = CONCURRENT, concurrency: int = 8):
        if strategy not in (CONCURRENT, SEQUENTIAL):
            raise ValueError(f"Unknown probe strategy: {strategy}")
        self.client = client
        self.timeout = timeout
        self.strategy = strategy
        self.concurrency = max(1, concurrency)

    async def probe(self, stream: Dict[str, Any]) -> Probe:
        """Non solleva mai eccezioni: un probe fallito è solo uno stream non utilizzabile."""
        result = Probe(stream=stream)
        if not result.url:
            result.error = "missing url"
            return result

        try:
            response = await self.client.head(result.url, timeout=self.timeout, allow_redirects=True)
        except (RequestsError, asyncio.TimeoutError) as e:
            logger.debug(f"Probe fallito per {result.url}: {e}")
            result.error = str(e) or e.__class__.__name__
            return result

        result.status_code = response.status_code
        result.content_type = response.headers.get("content-type")
        return result

    def is_usable(self, probe: Probe, target_mime: Optional[str]) -> bool:
        if not probe.reachable:
            return False
        mime = infer_mime(probe)
        if target_mime:
            return mime == target_mime
        return is_playable_mime(mime)

    async def select(self, streams: List[Dict[str, Any]], fmt: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Restituisce il primo stream utilizzabile o None se nessuno lo è.
        Solleva UnsupportedFormat se `fmt` non è tra i formati gestiti (prima di qualsiasi probe).
        """
        target_mime = target_mime_for(fmt) if fmt else None

        if self.strategy == SEQUENTIAL:
            chosen = await self._select_sequential(streams, target_mime)
        else:
            chosen = await self._select_concurrent(streams, target_mime)

        if chosen is None:
            logger.info(f"Nessuno stream utilizzabile su {len(streams)} candidati (formato: {fmt or 'qualsiasi'})")
        else:
            logger.info(f"Stream scelto: {chosen.get('url')}")
        return chosen

    async def _select_sequential(self, streams, target_mime):
        for stream in streams:
            probe = await self.probe(stream)
            if self.is_usable(probe, target_mime):
                return stream
        return None

    async def _select_concurrent(self, streams, target_mime):
        semaphore = asyncio.Semaphore(self.concurrency)

        async def bounded_probe(stream):
            async with semaphore:
                return await self.probe(stream)

        # return_exceptions=True: un errore imprevisto su un candidato non blocca gli altri
        results = await asyncio.gather(*(bounded_probe(s) for s in streams), return_exceptions=True)

        for res in results:
            if isinstance(res, Exception):
                logger.error(f"Eccezione non gestita durante un probe: {res}")
            elif self.is_usable(res, target_mime):
                return res.stream
        return None
