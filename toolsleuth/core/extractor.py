"""Tool index extraction from API validation error messages.

The API reports a bad tool purely by its position in the request, inside
a free-form message such as::

    tools.1.custom.input_schema: JSON schema is invalid...

This is a fragile contract: if the upstream error wording changes, the
index can no longer be recovered. Each known message shape is therefore
a separate extractor, and the correlator only sees the chain.
"""

import re
from abc import ABC, abstractmethod


class ToolIndexExtractor(ABC):
    """Recognizes one error message shape."""

    name: str = "abstract"

    @abstractmethod
    def extract(self, message: str) -> int | None:
        """Return the 0-based tool index, or None if the shape is absent.

        Must never raise on malformed input.
        """


class DottedPathExtractor(ToolIndexExtractor):
    """Matches the ``tools.<digits>.`` path prefix used by the messages API."""

    name = "dotted_path"
    _pattern = re.compile(r"tools\.([0-9]+)\.")

    def extract(self, message: str) -> int | None:
        match = self._pattern.search(message)
        if match is None:
            return None
        return int(match.group(1))


class ExtractorChain:
    """Tries extractors in order and returns the first index found."""

    def __init__(self, extractors: list[ToolIndexExtractor] | None = None):
        if extractors is None:
            extractors = [DottedPathExtractor()]
        self.extractors = list(extractors)

    def register(self, extractor: ToolIndexExtractor) -> None:
        """Add a message shape, tried after the existing ones."""
        self.extractors.append(extractor)

    def extract(self, message: object) -> int | None:
        if not isinstance(message, str) or not message:
            return None
        for extractor in self.extractors:
            index = extractor.extract(message)
            if index is not None:
                return index
        return None


_default_chain = ExtractorChain()


def extract_tool_index(message: object) -> int | None:
    """Extract the offending tool's index from an error message.

    Returns None when the message has no recognizable positional reference;
    that is a normal outcome, not an error.
    """
    return _default_chain.extract(message)


__all__ = [
    "DottedPathExtractor",
    "ExtractorChain",
    "ToolIndexExtractor",
    "extract_tool_index",
]
