"""Unicode normalization with security hardening.

The normalizer applies a profile's normalization form, then scans the result
for control and bidi characters (text_safe only) and zero-width characters
(on request). A second pass caps the combining marks per base character.
Compatibility profiles record every substitution that may change meaning.
"""

import unicodedata
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Tuple, Union

from ..codec.unicode import REPLACEMENT_CHARACTER
from ..shared.config import ErrorMode, NormalizationProfile, NormalizeOptions
from ..shared.errors import (
    BidiControlCharacter,
    CodecError,
    ExcessiveCombiningMarks,
    InvalidEncoding,
    InvalidOptions,
    ZeroWidthCharacter,
)
from ..shared.logging import get_logger
from ..shared.result import NormalizationResult, SemanticChange
from ..shared.telemetry import MetricsSink, OperationRecorder

# Control ranges rejected by the text_safe profile
C0_CONTROL_MAX = 0x1F
DEL = 0x7F
C1_CONTROL_MIN = 0x80
C1_CONTROL_MAX = 0x9F

# Bidi embeddings, overrides, isolates and marks
BIDI_CONTROLS: FrozenSet[int] = frozenset(
    list(range(0x202A, 0x202F))
    + list(range(0x2066, 0x206A))
    + [0x200E, 0x200F, 0x061C]
)

ZERO_WIDTH_CHARACTERS: FrozenSet[int] = frozenset({0x200B, 0x200C, 0x200D, 0xFEFF})

ASCII_MAX = 0x80

# Decomposition tag -> reason recorded for compatibility substitutions
COMPATIBILITY_REASONS = {
    "circle": "enclosed",
    "square": "enclosed",
    "super": "superscript",
    "sub": "subscript",
    "fraction": "fraction",
    "wide": "width",
    "narrow": "width",
    "small": "width",
    "font": "font",
    "vertical": "vertical",
    "noBreak": "no_break",
}

NON_SEMANTIC_WARNING = "non_semantic_preserving_profile"


def _resolve_profile(
    profile: Union[NormalizationProfile, str]
) -> NormalizationProfile:
    if isinstance(profile, NormalizationProfile):
        return profile
    try:
        return NormalizationProfile(str(profile).lower())
    except ValueError:
        raise InvalidOptions(
            f"Unknown normalization profile: {profile}",
            field_name="profile",
            operation="normalize",
        ) from None


def _is_mark(char: str) -> bool:
    return unicodedata.category(char).startswith("M")


def combining_mark_count(char: str) -> int:
    """Combining marks in the canonical decomposition of ``char``."""
    if ord(char) < ASCII_MAX:
        return 0
    return sum(1 for part in unicodedata.normalize("NFD", char) if _is_mark(part))


def compatibility_reason(char: str) -> str:
    """Name the kind of compatibility mapping ``char`` undergoes."""
    decomposition = unicodedata.decomposition(char)
    if decomposition.startswith("<"):
        tag = decomposition[1:decomposition.index(">")]
        if tag == "compat" and "LIGATURE" in unicodedata.name(char, ""):
            return "ligature"
        return COMPATIBILITY_REASONS.get(tag, "compatibility")
    return "compatibility"


@dataclass
class _Run:
    """A base character and the combining marks that follow it."""

    position: int
    chars: List[Tuple[int, str, int]] = field(default_factory=list)
    marks: int = 0


class Normalizer:
    """Profile-driven normalizer with hardening checks.

    Examples:
        >>> Normalizer().normalize("e\\u0301", NormalizationProfile.NFC).text
        'é'
    """

    def __init__(self, options: Optional[NormalizeOptions] = None,
                 correlation_id: Optional[str] = None) -> None:
        """Initialize normalizer.

        Args:
            options: Normalize options, defaults when None
            correlation_id: Caller supplied ID attached to logs
        """
        self.options = options or NormalizeOptions()
        self.logger = get_logger(__name__, correlation_id, "normalize")

    def normalize(
        self,
        text: str,
        profile: Union[NormalizationProfile, str] = NormalizationProfile.NFC,
    ) -> NormalizationResult:
        """Normalize ``text`` under ``profile``.

        Raises:
            InvalidEncoding: Control character under text_safe (strict), or
                non-str input
            BidiControlCharacter: Bidi control under text_safe (strict)
            ZeroWidthCharacter: Zero-width character when rejected (strict)
            ExcessiveCombiningMarks: Combining-mark run above the cap (strict)
        """
        if not isinstance(text, str):
            raise InvalidEncoding(
                f"normalize expects str, got {type(text).__name__}",
                operation="normalize",
                details={"expected": "str", "actual": type(text).__name__},
            )
        profile = _resolve_profile(profile)
        normalized = unicodedata.normalize(profile.unicode_form, text)

        changes: List[SemanticChange] = []
        warnings: List[str] = []
        if not profile.semantic_preserving:
            warnings.append(NON_SEMANTIC_WARNING)
            if self.options.warn_semantic_change:
                changes.extend(self._compatibility_changes(text, profile))

        output = self._harden(normalized, profile, changes, warnings)
        if changes and self.options.on_error is not ErrorMode.STRICT:
            self.logger.warning(
                "Normalization repaired input",
                extra={"profile": profile.value, "changes": len(changes)},
            )
        return NormalizationResult(
            text=output,
            profile=profile,
            input_length=len(text),
            output_length=len(output),
            semantic_changes=changes,
            warnings=warnings,
        )

    def _compatibility_changes(
        self, text: str, profile: NormalizationProfile
    ) -> List[SemanticChange]:
        if text.isascii():
            return []
        changes = []
        for position, char in enumerate(text):
            if ord(char) < ASCII_MAX:
                continue
            if unicodedata.normalize("NFKD", char) == unicodedata.normalize("NFD", char):
                continue
            changes.append(SemanticChange(
                position=position,
                original=char,
                normalized=unicodedata.normalize(profile.unicode_form, char),
                reason=compatibility_reason(char),
            ))
        return changes

    def _violation(
        self, char: str, position: int, profile: NormalizationProfile
    ) -> Optional[Tuple[str, CodecError]]:
        codepoint = ord(char)
        if profile is NormalizationProfile.TEXT_SAFE:
            is_control = (
                codepoint <= C0_CONTROL_MAX
                or codepoint == DEL
                or C1_CONTROL_MIN <= codepoint <= C1_CONTROL_MAX
            )
            if is_control and char not in self.options.allowed_controls:
                return "control_character", InvalidEncoding(
                    f"Control character U+{codepoint:04X} at position {position}",
                    operation="normalize",
                    details={"position": position, "codepoint": codepoint},
                )
            if codepoint in BIDI_CONTROLS:
                return "bidi_control_character", BidiControlCharacter(
                    codepoint, position
                )
        if self.options.reject_zero_width and codepoint in ZERO_WIDTH_CHARACTERS:
            return "zero_width_character", ZeroWidthCharacter(codepoint, position)
        return None

    def _repair(self, char: str, position: int, reason: str,
                changes: List[SemanticChange]) -> str:
        replacement = (
            REPLACEMENT_CHARACTER if self.options.on_error is ErrorMode.REPLACE
            else ""
        )
        changes.append(SemanticChange(position, char, replacement, reason))
        return replacement

    def _harden(
        self,
        normalized: str,
        profile: NormalizationProfile,
        changes: List[SemanticChange],
        warnings: List[str],
    ) -> str:
        strict = self.options.on_error is ErrorMode.STRICT

        # Character checks cover the whole text before any mark run is capped
        scanned: List[Tuple[int, str]] = []
        for position, char in enumerate(normalized):
            violation = self._violation(char, position, profile)
            if violation is not None:
                reason, error = violation
                if strict:
                    raise error
                warnings.append(f"{reason}:U+{ord(char):04X}@{position}")
                char = self._repair(char, position, reason, changes)
                if not char:
                    continue
            scanned.append((position, char))

        output: List[str] = []
        run: Optional[_Run] = None
        for position, char in scanned:
            marks = combining_mark_count(char)
            if run is None or not _is_mark(char):
                if run is not None:
                    self._close_run(run, output, changes, warnings)
                run = _Run(position)
            run.chars.append((position, char, marks))
            run.marks += marks

        if run is not None:
            self._close_run(run, output, changes, warnings)
        return "".join(output)

    def _close_run(
        self,
        run: _Run,
        output: List[str],
        changes: List[SemanticChange],
        warnings: List[str],
    ) -> None:
        maximum = self.options.max_combining_marks
        if run.marks <= maximum:
            output.extend(char for _, char, _ in run.chars)
            return
        if self.options.on_error is ErrorMode.STRICT:
            raise ExcessiveCombiningMarks(run.position, run.marks, maximum)

        warnings.append(f"excessive_combining_marks:{run.marks}@{run.position}")
        kept = 0
        for position, char, marks in run.chars:
            if kept + marks <= maximum or not marks:
                kept += marks
                output.append(char)
            else:
                output.append(
                    self._repair(char, position, "excessive_combining_marks", changes)
                )


def normalize(
    text: str,
    profile: Union[NormalizationProfile, str] = NormalizationProfile.NFC,
    options: Optional[NormalizeOptions] = None,
    *,
    metrics: Optional[MetricsSink] = None,
    correlation_id: Optional[str] = None,
) -> NormalizationResult:
    """Normalize text under a profile with hardening checks.

    Args:
        text: Text to normalize
        profile: nfc, nfd, nfkc, nfkd or text_safe
        options: Normalize options, defaults when None
        metrics: Sink receiving one event for the call
        correlation_id: Caller supplied ID attached to logs and metrics

    Returns:
        NormalizationResult

    Examples:
        >>> normalize("ﬁle", "nfkc").text
        'file'
    """
    with OperationRecorder("normalize", profile, metrics, correlation_id) as recorder:
        recorder.input_size = len(text) if isinstance(text, str) else 0
        result = Normalizer(options, correlation_id).normalize(text, profile)
        recorder.output_size = result.output_length
        return result
