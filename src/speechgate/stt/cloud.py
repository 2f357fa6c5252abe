"""Shared plumbing for hosted speech APIs reached over HTTP."""

import logging
from contextlib import contextmanager
from typing import Optional

import requests

from speechgate.core.constants import LOCALE_MAP
from speechgate.core.exceptions import EngineConfigurationError, STTError
from speechgate.stt.base import STTEngine
from speechgate.stt.models import EngineStatus

logger = logging.getLogger(__name__)

USER_AGENT = "SpeechGate/0.3"


def to_locale(language: Optional[str], default: str = "en-US") -> str:
    """Map 'en' style codes to the BCP-47 locales Azure and Google expect."""
    if not language:
        return default
    if "-" in language:
        return language
    return LOCALE_MAP.get(language.lower(), default)


class CloudSTTEngine(STTEngine):
    """Base for engines that need credentials and network access.

    Subclasses list the attribute names holding credentials in
    ``credential_fields``; an engine missing any of them reports unavailable
    and refuses to initialize.
    """

    credential_fields: tuple = ()

    def __init__(self, request_timeout: float = 30):
        super().__init__()
        self.request_timeout = request_timeout

    def _missing_credentials(self) -> list[str]:
        return [name for name in self.credential_fields if not getattr(self, name, None)]

    def _require_credentials(self) -> None:
        missing = self._missing_credentials()
        if missing:
            raise EngineConfigurationError(
                f"{self.descriptor.name} is missing {', '.join(missing)}"
            )

    def get_status(self) -> EngineStatus:
        missing = self._missing_credentials()
        if missing:
            return self._status(False, f"Missing {', '.join(missing)}")
        message = "Ready" if self._initialized else "Credentials configured"
        return self._status(True, message, version=self.api_version())

    def api_version(self) -> str:
        return ""

    @contextmanager
    def _http(self, action: str):
        """Translate requests failures into engine errors."""
        try:
            yield
        except requests.exceptions.Timeout as e:
            raise STTError(f"{self.descriptor.name} {action} timed out") from e
        except requests.exceptions.ConnectionError as e:
            raise STTError(f"Cannot reach {self.descriptor.name}: {e}") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status in (401, 403):
                raise EngineConfigurationError(
                    f"{self.descriptor.name} rejected the credentials (HTTP {status})"
                ) from e
            raise STTError(f"{self.descriptor.name} {action} failed: {e}") from e
        except ValueError as e:
            # requests raises a ValueError subclass for undecodable JSON bodies
            raise STTError(f"{self.descriptor.name} returned an unreadable response: {e}") from e
