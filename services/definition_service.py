"""
Word definitions for winner announcements.
"""

import asyncio
import logging

import requests

from config import DEFINITION_API_URL, DEFINITION_TIMEOUT_SECONDS
from services.interfaces import IDefinitionLookup

logger = logging.getLogger("wordle_bot.services.definitions")


class DictionaryApiDefinitionLookup(IDefinitionLookup):
    """
    Looks up definitions from a free dictionary HTTP API.

    Any network or parsing failure yields None; a missing definition never
    blocks an announcement.
    """

    def __init__(self, api_url: str | None = None, timeout: float | None = None):
        self.api_url = api_url if api_url is not None else DEFINITION_API_URL
        self.timeout = timeout if timeout is not None else DEFINITION_TIMEOUT_SECONDS

    def _fetch(self, word: str) -> str | None:
        url = self.api_url.format(word=word.lower())
        try:
            response = requests.get(url, timeout=self.timeout)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            entries = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning(f"Definition lookup for '{word}' failed: {exc}")
            return None
        return self._first_definition(entries)

    @staticmethod
    def _first_definition(entries) -> str | None:
        if not isinstance(entries, list):
            return None
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            for meaning in entry.get("meanings", []):
                for definition in meaning.get("definitions", []):
                    text = definition.get("definition")
                    if text:
                        part = meaning.get("partOfSpeech")
                        return f"({part}) {text}" if part else text
        return None

    async def define(self, word: str) -> str | None:
        return await asyncio.to_thread(self._fetch, word)
