import functools
import json
import logging
import os
from typing import Callable, Dict, List, Optional, Tuple

from socialdl.config.settings import config

logger = logging.getLogger(__name__)

LOCALES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "locales")


def flatten(tree: dict, prefix: str = "") -> Dict[str, str]:
    """{"error": {"timeout": "..."}} -> {"error.timeout": "..."}"""
    flat: Dict[str, str] = {}
    for key, value in tree.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(flatten(value, f"{dotted}."))
        else:
            flat[dotted] = str(value)
    return flat


class I18n:
    """Message catalogs keyed by dotted names, one JSON file per locale"""

    def __init__(self, default_locale: str, supported: List[str], locales_dir: str = LOCALES_DIR):
        self.default_locale = default_locale
        self.supported = supported
        self.catalogs: Dict[str, Dict[str, str]] = {}
        self.load(locales_dir)

    def load(self, locales_dir: str) -> None:
        if not os.path.isdir(locales_dir):
            logger.warning(f"Locales directory not found at {locales_dir}")
            return

        for filename in sorted(os.listdir(locales_dir)):
            code, ext = os.path.splitext(filename)
            if ext != ".json":
                continue
            try:
                with open(os.path.join(locales_dir, filename), "r", encoding="utf-8") as f:
                    self.catalogs[code] = flatten(json.load(f))
            except (OSError, ValueError) as e:
                logger.error(f"Error loading locale {code}: {e}")

    def get(self, key: str, locale: Optional[str] = None, **kwargs) -> str:
        """Translated message; falls back to the default locale, then to English, then to the key"""
        for code in (locale, self.default_locale, "en"):
            template = self.catalogs.get(code or "", {}).get(key)
            if template is not None:
                break
        else:
            return key

        try:
            return template.format(**kwargs)
        except (KeyError, IndexError):
            return template

    def negotiate(self, accept_language: Optional[str]) -> str:
        """Best supported locale for an Accept-Language header"""
        ranked: List[Tuple[float, int, str]] = []
        for position, part in enumerate((accept_language or "").split(",")):
            pieces = part.strip().split(";")
            code = pieces[0].split("-")[0].strip().lower()
            if not code:
                continue
            weight = 1.0
            for param in pieces[1:]:
                name, _, value = param.strip().partition("=")
                if name == "q":
                    try:
                        weight = float(value)
                    except ValueError:
                        weight = 0.0
            ranked.append((-weight, position, code))

        for weight, _, code in sorted(ranked):
            if weight < 0 and code in self.supported:
                return code
        return self.default_locale

    def translator(self, accept_language: Optional[str]) -> Callable[..., str]:
        return functools.partial(self.get, locale=self.negotiate(accept_language))


i18n = I18n(config.i18n.default_locale, config.i18n.supported_locales)
