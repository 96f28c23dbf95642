"""Option objects for every engine operation.

Options are plain immutable value objects passed per call; nothing here is
global. Each option class validates itself in ``__post_init__`` and raises
``InvalidOptions`` on bad values. ``EngineConfig`` bundles the per-operation
options for callers who want to keep one configuration object around.
"""

import json
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
)

from .errors import InvalidOptions
from .formats import EncodingFormat

# Default limits
DEFAULT_MAX_ENCODED_SIZE = 500 * 1024 * 1024  # 500 MiB
DEFAULT_MAX_DECODED_SIZE = 100 * 1024 * 1024  # 100 MiB
DEFAULT_MAX_EXPANSION_RATIO = 10.0
DEFAULT_MAX_SAMPLE_SIZE = 8192
DEFAULT_MAX_CANDIDATES = 3
DEFAULT_MAX_COMBINING_MARKS = 10

LINE_ENDINGS = ("\n", "\r\n")

E = TypeVar("E", bound=Enum)


class ErrorMode(Enum):
    """Caller-selected recovery behavior for malformed input."""

    STRICT = "strict"        # Raise on the first problem
    REPLACE = "replace"      # Substitute U+FFFD (or skip for binary formats)
    IGNORE = "ignore"        # Drop offending input
    FALLBACK = "fallback"    # Retry with an ordered list of formats


class LetterCase(Enum):
    """Letter case for hex output."""

    UPPER = "upper"
    LOWER = "lower"


class NormalizationProfile(Enum):
    """Named normalization profiles."""

    NFC = "nfc"
    NFD = "nfd"
    NFKC = "nfkc"
    NFKD = "nfkd"
    TEXT_SAFE = "text_safe"

    @property
    def unicode_form(self) -> str:
        """Unicode normalization form applied by the profile."""
        if self is NormalizationProfile.TEXT_SAFE:
            return "NFC"
        return self.value.upper()

    @property
    def semantic_preserving(self) -> bool:
        """Whether the profile only applies canonical equivalences."""
        return self not in (NormalizationProfile.NFKC, NormalizationProfile.NFKD)


class MismatchPolicy(Enum):
    """What BOM correction does when the BOM conflicts with the expectation."""

    ERROR = "error"
    FIX = "fix"
    IGNORE = "ignore"


def _coerce_enum(enum_cls: Type[E], value: Any, field_name: str) -> E:
    """Accept enum members, values or member names."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        for member in enum_cls:
            if value.lower() in (member.value, member.name.lower()):
                return member
    raise InvalidOptions(
        f"{field_name} must be one of {[m.value for m in enum_cls]}, got {value!r}",
        field_name=field_name,
    )


def _check_positive(value: Any, field_name: str) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        raise InvalidOptions(f"{field_name} must be > 0", field_name=field_name)


@dataclass(frozen=True)
class EncodeOptions:
    """Options for binary-to-text encoding.

    Attributes:
        padding: Emit trailing padding (Base64 and Base32 families)
        case: Letter case for hex output
        line_length: Wrap width, None or 0 for a single line
        line_ending: Separator inserted between wrapped lines
        max_encoded_size: Maximum output length in bytes
        checksum_algorithm: Digest the input with this algorithm when set
    """

    padding: bool = True
    case: LetterCase = LetterCase.LOWER
    line_length: Optional[int] = None
    line_ending: str = "\n"
    max_encoded_size: int = DEFAULT_MAX_ENCODED_SIZE
    checksum_algorithm: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate encode options."""
        object.__setattr__(self, "case", _coerce_enum(LetterCase, self.case, "case"))
        if self.line_length is not None and self.line_length < 0:
            raise InvalidOptions("line_length must be >= 0 or None",
                                 field_name="line_length")
        if self.line_ending not in LINE_ENDINGS:
            raise InvalidOptions("line_ending must be '\\n' or '\\r\\n'",
                                 field_name="line_ending")
        _check_positive(self.max_encoded_size, "max_encoded_size")

    @property
    def wraps_lines(self) -> bool:
        """Whether output is wrapped."""
        return bool(self.line_length)

    @classmethod
    def mime(cls) -> "EncodeOptions":
        """MIME-style output: 76 columns, CRLF line endings."""
        return cls(line_length=76, line_ending="\r\n")

    @classmethod
    def pem(cls) -> "EncodeOptions":
        """PEM-style output: 64 columns, LF line endings."""
        return cls(line_length=64, line_ending="\n")

    @classmethod
    def unpadded(cls) -> "EncodeOptions":
        """Single-line output without padding."""
        return cls(padding=False)


@dataclass(frozen=True)
class DecodeOptions:
    """Options for decoding.

    Attributes:
        max_decoded_size: Maximum output size in bytes
        on_error: Recovery mode for malformed input
        fallback_formats: Formats tried in order when ``on_error`` is fallback
        ignore_whitespace: Skip ASCII whitespace; None means on for
            binary-to-text formats
        validate_padding: Check trailing padding instead of stripping it
        max_expansion_ratio: Maximum output/input size ratio
        checksum_algorithm: Digest the decoded bytes with this algorithm
        expected_checksum: Hex digest the decoded bytes must match
    """

    max_decoded_size: int = DEFAULT_MAX_DECODED_SIZE
    on_error: ErrorMode = ErrorMode.STRICT
    fallback_formats: Tuple[EncodingFormat, ...] = ()
    ignore_whitespace: Optional[bool] = None
    validate_padding: bool = True
    max_expansion_ratio: float = DEFAULT_MAX_EXPANSION_RATIO
    checksum_algorithm: Optional[str] = None
    expected_checksum: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate decode options."""
        object.__setattr__(
            self, "on_error", _coerce_enum(ErrorMode, self.on_error, "on_error")
        )
        object.__setattr__(
            self,
            "fallback_formats",
            tuple(EncodingFormat.parse(fmt) for fmt in self.fallback_formats),
        )
        _check_positive(self.max_decoded_size, "max_decoded_size")
        _check_positive(self.max_expansion_ratio, "max_expansion_ratio")
        if self.on_error is ErrorMode.FALLBACK and not self.fallback_formats:
            raise InvalidOptions(
                "fallback_formats must not be empty when on_error is 'fallback'",
                field_name="fallback_formats",
            )
        if self.expected_checksum is not None and not self.checksum_algorithm:
            raise InvalidOptions(
                "expected_checksum requires checksum_algorithm",
                field_name="expected_checksum",
            )

    def whitespace_ignored(self, fmt: EncodingFormat) -> bool:
        """Resolve ``ignore_whitespace`` for a format."""
        if self.ignore_whitespace is None:
            return fmt.is_binary_to_text
        return self.ignore_whitespace

    @classmethod
    def lenient(cls) -> "DecodeOptions":
        """Replace malformed input instead of failing."""
        return cls(on_error=ErrorMode.REPLACE, validate_padding=False)

    @classmethod
    def with_fallback(cls, *formats: EncodingFormat) -> "DecodeOptions":
        """Try ``formats`` in order when the requested format fails."""
        return cls(on_error=ErrorMode.FALLBACK, fallback_formats=tuple(formats))


LegacyAnalyzer = Callable[[bytes], Sequence[Any]]


@dataclass(frozen=True)
class DetectOptions:
    """Options for encoding detection.

    Attributes:
        max_sample_size: Bytes inspected from the start of the input
        min_confidence: Detection below this confidence fails
        max_candidates: Maximum number of ranked candidates returned
        legacy_analyzer: Optional hook ranking legacy 8-bit encodings when
            every built-in stage gives up
    """

    max_sample_size: int = DEFAULT_MAX_SAMPLE_SIZE
    min_confidence: float = 0.0
    max_candidates: int = DEFAULT_MAX_CANDIDATES
    legacy_analyzer: Optional[LegacyAnalyzer] = None

    def __post_init__(self) -> None:
        """Validate detect options."""
        _check_positive(self.max_sample_size, "max_sample_size")
        if not 0.0 <= self.min_confidence <= 1.0:
            raise InvalidOptions("min_confidence must be between 0.0 and 1.0",
                                 field_name="min_confidence")
        if self.max_candidates < 1:
            raise InvalidOptions("max_candidates must be >= 1",
                                 field_name="max_candidates")
        if self.legacy_analyzer is not None and not callable(self.legacy_analyzer):
            raise InvalidOptions("legacy_analyzer must be callable",
                                 field_name="legacy_analyzer")


@dataclass(frozen=True)
class NormalizeOptions:
    """Options for Unicode normalization.

    Attributes:
        max_combining_marks: Maximum combining marks on one base character
        reject_zero_width: Reject U+200B, U+200C, U+200D and U+FEFF
        warn_semantic_change: Record compatibility substitutions
        on_error: strict, replace or ignore
        allowed_controls: Control characters the text_safe profile keeps
    """

    max_combining_marks: int = DEFAULT_MAX_COMBINING_MARKS
    reject_zero_width: bool = False
    warn_semantic_change: bool = True
    on_error: ErrorMode = ErrorMode.STRICT
    allowed_controls: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"\t", "\n", "\r"})
    )

    def __post_init__(self) -> None:
        """Validate normalize options."""
        object.__setattr__(
            self, "on_error", _coerce_enum(ErrorMode, self.on_error, "on_error")
        )
        object.__setattr__(self, "allowed_controls", frozenset(self.allowed_controls))
        if self.max_combining_marks < 0:
            raise InvalidOptions("max_combining_marks must be >= 0",
                                 field_name="max_combining_marks")
        if self.on_error is ErrorMode.FALLBACK:
            raise InvalidOptions("on_error 'fallback' is not valid for normalization",
                                 field_name="on_error")
        if any(len(char) != 1 for char in self.allowed_controls):
            raise InvalidOptions("allowed_controls must contain single characters",
                                 field_name="allowed_controls")

    @classmethod
    def log_safe(cls) -> "NormalizeOptions":
        """Options for text written to logs and user interfaces."""
        return cls(reject_zero_width=True, allowed_controls=frozenset({"\t"}))

    @classmethod
    def lenient(cls) -> "NormalizeOptions":
        """Repair offending characters instead of failing."""
        return cls(on_error=ErrorMode.REPLACE)


@dataclass(frozen=True)
class BomOptions:
    """Policy for BOM correction.

    Attributes:
        prefer_no_bom: Strip a valid BOM
        add_if_missing: Insert the expected BOM when none is present
        on_mismatch: error, fix or ignore a conflicting BOM
        allow_multiple: Strip repeated BOMs instead of failing
    """

    prefer_no_bom: bool = False
    add_if_missing: bool = False
    on_mismatch: MismatchPolicy = MismatchPolicy.ERROR
    allow_multiple: bool = False

    def __post_init__(self) -> None:
        """Validate BOM options."""
        object.__setattr__(
            self,
            "on_mismatch",
            _coerce_enum(MismatchPolicy, self.on_mismatch, "on_mismatch"),
        )
        if self.prefer_no_bom and self.add_if_missing:
            raise InvalidOptions(
                "prefer_no_bom and add_if_missing are mutually exclusive",
                field_name="add_if_missing",
            )


_COMPONENTS: Dict[str, type] = {
    "encode": EncodeOptions,
    "decode": DecodeOptions,
    "detect": DetectOptions,
    "normalize": NormalizeOptions,
    "bom": BomOptions,
}


def _to_plain(value: Any) -> Any:
    """Recursively convert option values to JSON-compatible values."""
    if hasattr(value, "__dataclass_fields__"):
        return {f.name: _to_plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, frozenset):
        return sorted(_to_plain(item) for item in value)
    if isinstance(value, (list, tuple)):
        return [_to_plain(item) for item in value]
    if callable(value):
        # Hooks are not serialisable
        return None
    return value


@dataclass(frozen=True)
class EngineConfig:
    """Bundle of per-operation options.

    Thread-safe due to frozen dataclass implementation; callers pass the
    component options to each operation explicitly.
    """

    encode: EncodeOptions = field(default_factory=EncodeOptions)
    decode: DecodeOptions = field(default_factory=DecodeOptions)
    detect: DetectOptions = field(default_factory=DetectOptions)
    normalize: NormalizeOptions = field(default_factory=NormalizeOptions)
    bom: BomOptions = field(default_factory=BomOptions)

    version: str = "1.0.0"
    name: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate component types."""
        for component, option_cls in _COMPONENTS.items():
            if not isinstance(getattr(self, component), option_cls):
                raise InvalidOptions(
                    f"{component} must be a {option_cls.__name__}",
                    field_name=component,
                )

    def override(self, **kwargs: Any) -> "EngineConfig":
        """Create a new configuration with specific overrides.

        Args:
            **kwargs: Fields to override, nested with ``component__field``

        Returns:
            New EngineConfig instance with overrides applied

        Example:
            >>> config = EngineConfig()
            >>> strict = config.override(decode__max_decoded_size=1024)
        """
        nested: Dict[str, Dict[str, Any]] = {}
        top_level: Dict[str, Any] = {}
        for key, value in kwargs.items():
            if "__" in key:
                component, field_name = key.split("__", 1)
                if component not in _COMPONENTS:
                    raise InvalidOptions(f"Unknown component: {component}",
                                         field_name=component)
                nested.setdefault(component, {})[field_name] = value
            else:
                top_level[key] = value

        new_fields: Dict[str, Any] = dict(top_level)
        for component, overrides in nested.items():
            try:
                new_fields[component] = replace(getattr(self, component), **overrides)
            except TypeError as e:
                raise InvalidOptions(str(e), field_name=component) from e

        return replace(self, **new_fields)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format."""
        result = _to_plain(self)
        if not isinstance(result, dict):
            raise InvalidOptions("Configuration serialization failed")
        return result

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Create configuration from dictionary.

        Enum fields accept values or names; option constructors coerce and
        validate them.
        """
        values: Dict[str, Any] = {}
        for key, value in data.items():
            option_cls = _COMPONENTS.get(key)
            if option_cls is None:
                values[key] = value
                continue
            known = {f.name for f in fields(option_cls)}
            unknown = set(value) - known
            if unknown:
                raise InvalidOptions(
                    f"Unknown {key} option(s): {sorted(unknown)}", field_name=key
                )
            values[key] = option_cls(**value)
        return cls(**values)

    @classmethod
    def from_json(cls, json_str: str) -> "EngineConfig":
        """Create configuration from JSON string."""
        return cls.from_dict(json.loads(json_str))

    # Preset factory methods
    @classmethod
    def strict(cls) -> "EngineConfig":
        """Fail on any malformed input."""
        return cls(name="strict", description="Fail fast on malformed input")

    @classmethod
    def lenient(cls) -> "EngineConfig":
        """Repair malformed input and keep going."""
        return cls(
            decode=DecodeOptions.lenient(),
            normalize=NormalizeOptions.lenient(),
            bom=BomOptions(on_mismatch=MismatchPolicy.FIX, allow_multiple=True),
            name="lenient",
            description="Replace malformed input and repair BOMs",
        )

    @classmethod
    def hardened(cls) -> "EngineConfig":
        """Tight limits for untrusted input."""
        return cls(
            decode=DecodeOptions(
                max_decoded_size=10 * 1024 * 1024, max_expansion_ratio=4.0
            ),
            detect=DetectOptions(min_confidence=0.5),
            normalize=NormalizeOptions(
                max_combining_marks=4, reject_zero_width=True
            ),
            bom=BomOptions(prefer_no_bom=True),
            name="hardened",
            description="Tight limits for untrusted input",
        )
