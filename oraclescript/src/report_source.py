"""Load already-resolved validator reports for the execute phase.

Reports are a JSON object mapping external id to the list of raw strings
the validators submitted for it:

.. code-block:: json

    {"1": ["100.5,2001", "100.7,2002"], "5": []}

The document is read from a local file or fetched over HTTP(S).
"""

import json
import logging
from pathlib import Path
from typing import Any

import httpx

from .errors import InvalidRequestError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def parse_reports(data: Any) -> dict[int, list[str]]:
    """Validate and normalize a decoded reports document.

    :param data: Decoded JSON document.
    :returns: Dict mapping external id to raw report strings.
    :raises InvalidRequestError: If the document has the wrong shape.
    """
    if not isinstance(data, dict):
        raise InvalidRequestError("Reports must be a JSON object keyed by external id")

    reports: dict[int, list[str]] = {}
    for key, values in data.items():
        try:
            external_id = int(key)
        except ValueError as e:
            raise InvalidRequestError(f"Invalid external id {key!r}") from e
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise InvalidRequestError(f"Reports for external id {key} must be a list of strings")
        reports[external_id] = values
    return reports


def load_reports(location: str, timeout: float = DEFAULT_TIMEOUT) -> dict[int, list[str]]:
    """Load validator reports from a file path or an HTTP(S) URL.

    :param location: File path or URL.
    :param timeout: HTTP timeout in seconds.
    :returns: Dict mapping external id to raw report strings.
    :raises InvalidRequestError: If the reports cannot be loaded or parsed.
    """
    if location.startswith(("http://", "https://")):
        logger.debug("Fetching reports from %s", location)
        try:
            with httpx.Client(timeout=timeout, follow_redirects=True) as client:
                response = client.get(location)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise InvalidRequestError(
                f"HTTP {e.response.status_code} fetching reports from {location}"
            ) from e
        except httpx.RequestError as e:
            raise InvalidRequestError(f"Request for reports failed: {e}") from e
        except json.JSONDecodeError as e:
            raise InvalidRequestError(f"Reports at {location} are not JSON: {e}") from e
    else:
        path = Path(location)
        logger.debug("Reading reports from %s", path)
        try:
            with open(path, "r") as file:
                data = json.load(file)
        except OSError as e:
            raise InvalidRequestError(f"Cannot read reports file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise InvalidRequestError(f"Reports file {path} is not JSON: {e}") from e

    return parse_reports(data)
