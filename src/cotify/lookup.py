#!/usr/bin/env python3
"""Public CNPJ registry lookup used to prefill supplier and branch forms"""

import logging
from typing import Any, Dict, Optional

import requests

from .config import Config
from .normalize import CNPJ_LENGTH, clean_document

logger = logging.getLogger("cotify")


class CnpjLookupService:
    """Fetch company data from the BrasilAPI CNPJ endpoint"""

    @staticmethod
    def _address(data: Dict[str, Any]) -> str:
        street = data.get("logradouro") or ""
        number = data.get("numero")
        return f"{street}, {number}" if number else street

    @staticmethod
    def lookup(cnpj: str, session: Optional[requests.Session] = None) -> Optional[Dict[str, Any]]:
        """
        Look up a CNPJ.

        Returns a dict with document, name, trade_name, address, city and
        state, or None when the document is not a CNPJ or the registry
        cannot answer. Callers fall back to what the user typed.
        """
        document = clean_document(cnpj)
        if len(document) != CNPJ_LENGTH:
            return None

        http = session or requests
        url = Config.CNPJ_LOOKUP_URL.format(cnpj=document)
        try:
            response = http.get(url, timeout=Config.CNPJ_LOOKUP_TIMEOUT)
        except requests.RequestException as e:
            logger.info(f"CNPJ lookup unavailable for {document}: {e}")
            return None

        if not response.ok:
            logger.info(f"CNPJ lookup for {document} returned HTTP {response.status_code}")
            return None

        try:
            data = response.json()
        except ValueError:
            logger.info(f"CNPJ lookup for {document} returned invalid JSON")
            return None

        name = data.get("razao_social") or ""
        return {
            "document": clean_document(data.get("cnpj")) or document,
            "name": name,
            "trade_name": data.get("nome_fantasia") or name,
            "address": CnpjLookupService._address(data),
            "city": data.get("municipio"),
            "state": data.get("uf"),
        }
