"""Normalizers applied to scraped cell text and links."""

import re
from abc import ABC, abstractmethod
from typing import Any

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")


class BaseNormalizer(ABC):
    """Base class for normalizers."""

    @abstractmethod
    def normalize(self, value: Any) -> Any:
        """Normalize value.

        Args:
            value: Value to normalize

        Returns:
            Normalized value
        """

    def __call__(self, value: Any) -> Any:
        return self.normalize(value)


class TextNormalizer(BaseNormalizer):
    """Normalizer for text data."""

    def __init__(
        self,
        strip: bool = True,
        lowercase: bool = False,
        remove_extra_whitespace: bool = True,
    ) -> None:
        """Initialize text normalizer.

        Args:
            strip: Strip leading/trailing whitespace
            lowercase: Convert to lowercase (casefold)
            remove_extra_whitespace: Replace runs of whitespace with one space
        """
        self.strip = strip
        self.lowercase = lowercase
        self.remove_extra_whitespace = remove_extra_whitespace

    def normalize(self, value: Any) -> str:
        """Normalize text value.

        Args:
            value: Value to normalize

        Returns:
            Normalized text string
        """
        if value is None:
            return ""

        text = str(value)

        if self.remove_extra_whitespace:
            text = re.sub(r"\s+", " ", text)

        if self.strip:
            text = text.strip()

        if self.lowercase:
            text = text.casefold()

        return text


class LinkResolver(BaseNormalizer):
    """Resolve directory links to absolute URLs.

    A link that already carries a scheme is returned unchanged. Anything
    else is appended to the directory origin, so ``"/provider/123"`` with
    origin ``"https://example.test"`` becomes
    ``"https://example.test/provider/123"``.

    The ``"#"`` placeholder used for rows without a link resolves to
    ``origin + "#"``, which is not a provider page.
    """

    def __init__(self, base_url: str) -> None:
        """Initialize resolver.

        Args:
            base_url: Directory origin, e.g. ``https://opennpi.com``
        """
        self.base_url = base_url.rstrip("/")

    def normalize(self, value: Any) -> str:
        link = "" if value is None else str(value).strip()

        if has_scheme(link):
            return link

        if link.startswith("//"):
            scheme = self.base_url.split(":", 1)[0]
            return f"{scheme}:{link}"

        if link and not link.startswith(("/", "?", "#")):
            link = f"/{link}"

        return f"{self.base_url}{link}"


def has_scheme(link: str) -> bool:
    """Check whether a link starts with a URL scheme such as ``https:``."""
    return bool(_SCHEME_RE.match(link))
