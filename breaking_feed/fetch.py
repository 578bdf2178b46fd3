"""HTTP GET with a whole-request deadline.

The `timeout` that requests accepts bounds each socket read, so a server
that keeps trickling bytes can hold a download open indefinitely. The
helpers here bound the total time spent on one request instead.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

import requests

CHUNK_SIZE = 8192


def get_bytes(
    session: requests.Session, url: str, timeout: float, **kwargs
) -> bytes:
    """GET `url` and return the response body.

    Args:
        session: Session used for the request
        url: URL to fetch
        timeout: Seconds allowed for the whole request, body included
        **kwargs: Extra arguments for `session.get` (e.g. `params`)

    Raises:
        requests.Timeout: If the body is not complete within `timeout`
        requests.RequestException: If the request itself fails
    """
    deadline = time.monotonic() + timeout
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(_read_body, session, url, timeout, deadline, kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as e:
        raise requests.Timeout(f"Request to {url} exceeded {timeout}s") from e
    finally:
        # A worker blocked on a slow read stops at its next chunk.
        executor.shutdown(wait=False, cancel_futures=True)


def _read_body(session, url, timeout, deadline, kwargs) -> bytes:
    response = session.get(url, timeout=timeout, stream=True, **kwargs)
    try:
        response.raise_for_status()
        chunks = []
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if time.monotonic() > deadline:
                raise requests.Timeout(f"Request to {url} exceeded {timeout}s")
            chunks.append(chunk)
        return b"".join(chunks)
    finally:
        response.close()
