"""
Labeling functions for programmatic weak supervision.

A labeling function inspects one document and returns zero or more
(label, confidence) votes. Returning an empty sequence is an abstention.
Functions are identified by name: two functions sharing a name are the
same voter.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator, Sequence

from loguru import logger

from ...models import Document, LabelVote

VoteLike = LabelVote | tuple[str, float]


class LabelingFunction(ABC):
    """
    Base class for labeling functions.

    Subclasses implement :meth:`evaluate`. They must not rely on shared
    mutable state: the population pass may evaluate documents from
    several threads.
    """

    def __init__(self, name: str, description: str = "") -> None:
        if not name:
            raise ValueError("Labeling function name must be non-empty")
        self.name = name
        self.description = description

    @abstractmethod
    def evaluate(self, document: Document) -> Sequence[VoteLike]:
        """Return the votes for ``document``; an empty sequence abstains."""

    def __call__(self, document: Document) -> Sequence[VoteLike]:
        return self.evaluate(document)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class FunctionLabelingFunction(LabelingFunction):
    """Wrap a plain callable ``fn(document) -> votes`` as a labeling function."""

    def __init__(
        self,
        name: str,
        fn: Callable[[Document], Iterable[VoteLike] | None],
        description: str = "",
    ) -> None:
        super().__init__(name, description or (fn.__doc__ or "").strip())
        self.fn = fn

    def evaluate(self, document: Document) -> Sequence[VoteLike]:
        return list(self.fn(document) or [])


class KeywordLabelingFunction(LabelingFunction):
    """
    Vote for a label when keywords are frequent enough in the text.

    Whole-word keyword hits count once, phrase hits count
    ``phrase_weight`` times. The hit count is divided by the word count;
    above ``min_ratio`` the function votes with
    ``min(max_confidence, base_confidence + ratio * scale)``.
    """

    def __init__(
        self,
        name: str,
        label: str,
        keywords: Iterable[str],
        phrases: Iterable[str] = (),
        base_confidence: float = 0.3,
        scale: float = 10.0,
        max_confidence: float = 0.95,
        min_ratio: float = 0.01,
        phrase_weight: int = 3,
        description: str = "",
    ) -> None:
        super().__init__(name, description)
        self.label = label
        self.keywords = [k.lower() for k in keywords]
        self.phrases = [p.lower() for p in phrases]
        self.base_confidence = base_confidence
        self.scale = scale
        self.max_confidence = max_confidence
        self.min_ratio = min_ratio
        self.phrase_weight = phrase_weight
        self._keyword_patterns = [
            re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE) for keyword in self.keywords
        ]

    def score(self, document: Document) -> int:
        text = document.text.lower()
        hits = sum(len(pattern.findall(document.text)) for pattern in self._keyword_patterns)
        hits += sum(self.phrase_weight for phrase in self.phrases if phrase in text)
        return hits

    def evaluate(self, document: Document) -> Sequence[VoteLike]:
        hits = self.score(document)
        ratio = hits / max(document.word_count, 1)
        if ratio <= self.min_ratio:
            return []
        confidence = min(self.max_confidence, self.base_confidence + ratio * self.scale)
        return [LabelVote(
            label=self.label,
            confidence=confidence,
            rationale=f"{hits} keyword hits ({ratio * 100:.1f}% of content)",
        )]


class RegexLabelingFunction(LabelingFunction):
    """
    Vote for a label when a pattern matches.

    With ``per_match`` set, confidence grows by that amount for every match
    after the first, capped at ``max_confidence``.
    """

    def __init__(
        self,
        name: str,
        label: str,
        pattern: str | re.Pattern[str],
        confidence: float = 0.7,
        per_match: float = 0.0,
        max_confidence: float = 0.95,
        flags: int = re.IGNORECASE,
        description: str = "",
    ) -> None:
        super().__init__(name, description)
        self.label = label
        self.pattern = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern, flags)
        self.confidence = confidence
        self.per_match = per_match
        self.max_confidence = max_confidence

    def evaluate(self, document: Document) -> Sequence[VoteLike]:
        matches = self.pattern.findall(document.text)
        if not matches:
            return []
        confidence = min(self.max_confidence, self.confidence + self.per_match * (len(matches) - 1))
        return [LabelVote(label=self.label, confidence=confidence, rationale=f"{len(matches)} matches")]


class LengthLabelingFunction(LabelingFunction):
    """Vote for a label when the word count falls in ``[min_words, max_words]``."""

    def __init__(
        self,
        name: str,
        label: str,
        min_words: int = 0,
        max_words: int | None = None,
        confidence: float = 0.5,
        description: str = "",
    ) -> None:
        super().__init__(name, description)
        self.label = label
        self.min_words = min_words
        self.max_words = max_words
        self.confidence = confidence

    def evaluate(self, document: Document) -> Sequence[VoteLike]:
        words = document.word_count
        if words < self.min_words:
            return []
        if self.max_words is not None and words > self.max_words:
            return []
        return [LabelVote(label=self.label, confidence=self.confidence)]


def create_keyword_lf(name: str, label: str, keywords: Iterable[str], **kwargs) -> KeywordLabelingFunction:
    """Create a keyword-frequency labeling function."""
    return KeywordLabelingFunction(name, label, keywords, **kwargs)


def create_regex_lf(name: str, label: str, pattern: str, **kwargs) -> RegexLabelingFunction:
    """Create a pattern-matching labeling function."""
    return RegexLabelingFunction(name, label, pattern, **kwargs)


def create_length_lf(name: str, label: str, **kwargs) -> LengthLabelingFunction:
    """Create a document-length labeling function."""
    return LengthLabelingFunction(name, label, **kwargs)


def labeling_function(name: str | None = None, description: str = ""):
    """
    Decorator turning a plain function into a :class:`FunctionLabelingFunction`.

    Example:
        >>> @labeling_function()
        ... def mentions_panic(document):
        ...     return [("fear_framing", 0.6)] if "panic" in document.text else []
    """

    def decorator(fn: Callable[[Document], Iterable[VoteLike] | None]) -> FunctionLabelingFunction:
        return FunctionLabelingFunction(name or fn.__name__, fn, description)

    return decorator


class LabelingFunctionRegistry:
    """
    Ordered, name-unique collection of labeling functions.

    Registration order fixes each function's index in the vote matrix, so
    iteration is reproducible across runs.
    """

    def __init__(self, functions: Iterable[LabelingFunction] = ()) -> None:
        self._functions: dict[str, LabelingFunction] = {}
        for lf in functions:
            self.register(lf)

    def register(self, lf: LabelingFunction) -> LabelingFunction:
        """Add a function; a duplicate name keeps the first registration."""
        if lf.name in self._functions:
            logger.warning(
                f"Labeling function '{lf.name}' is already registered; keeping the first definition"
            )
            return self._functions[lf.name]
        self._functions[lf.name] = lf
        return lf

    @property
    def names(self) -> list[str]:
        return list(self._functions)

    def get(self, name: str) -> LabelingFunction:
        return self._functions[name]

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __iter__(self) -> Iterator[LabelingFunction]:
        return iter(self._functions.values())

    def __len__(self) -> int:
        return len(self._functions)

    def __repr__(self) -> str:
        return f"LabelingFunctionRegistry({self.names})"
