"""Parser registry and the normalization pipeline.

An InputNormalizer owns an ordered list of parsers. `normalize` hands the
input to the parser that claims it, runs the consistency validator over the
result and folds everything into one NormalizationResult. It never raises for
any input.
"""

import logging

from spec_normalizer.config import NormalizerSettings
from spec_normalizer.parser.base import (
    CanonicalModel,
    InputSpec,
    NormalizationNote,
    NormalizedSpec,
    ParserResult,
    ParsingError,
    SpecParser,
)
from spec_normalizer.parser.chain_metadata import ChainMetadataParser
from spec_normalizer.parser.contract_abi import ContractABIParser
from spec_normalizer.parser.swagger import OpenAPIParser
from spec_normalizer.parser.utils import BUILTIN_TYPES
from spec_normalizer.pipeline.validator import ValidationError, ValidationWarning, validate_spec

logger = logging.getLogger(__name__)


class RegistryFrozenError(RuntimeError):
    """Raised when registering a parser on a frozen normalizer."""


class NormalizationResult(CanonicalModel):
    success: bool
    spec: NormalizedSpec | None = None
    error: str | None = None
    parse_errors: list[ParsingError] | None = None
    validation_errors: list[ValidationError] | None = None
    warnings: list[NormalizationNote] = []


def default_parsers() -> list[SpecParser]:
    return [OpenAPIParser(), ContractABIParser(), ChainMetadataParser()]


def _as_note(warning: ValidationWarning, failed: bool) -> NormalizationNote:
    # Major issues are promoted one level when the document is rejected anyway
    if warning.severity == "major":
        level = "error" if failed else "warning"
    else:
        level = "warning" if failed else "info"
    return NormalizationNote(level=level, code=warning.code, message=warning.message, location=warning.path)


def _parser_name(parser: SpecParser) -> str:
    return getattr(parser, "name", type(parser).__name__)


def _exception_error(parser: SpecParser, stage: str, exc: Exception) -> ParsingError:
    return ParsingError(
        code="PARSE_EXCEPTION",
        message=f"Unexpected error: {exc}",
        context={"parser": _parser_name(parser), "stage": stage},
    )


class InputNormalizer:
    """Caller-owned parser registry.

    Dispatch picks the first registered parser whose `can_parse` is true.
    With `strict_dispatch` set, an input claimed by several parsers is
    rejected with AMBIGUOUS_PARSER instead.
    """

    def __init__(self, parsers: list[SpecParser] | None = None, settings: NormalizerSettings | None = None):
        self.settings = settings or NormalizerSettings()
        self._parsers: list[SpecParser] = list(default_parsers() if parsers is None else parsers)
        self._frozen = False
        self.builtin_types = BUILTIN_TYPES | frozenset(self.settings.extra_builtin_types)

    @property
    def parsers(self) -> tuple[SpecParser, ...]:
        return tuple(self._parsers)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register_parser(self, parser: SpecParser) -> None:
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register {_parser_name(parser)}: registry is frozen"
            )
        self._parsers.append(parser)

    def freeze(self) -> "InputNormalizer":
        self._frozen = True
        return self

    def normalize(self, input_spec: InputSpec) -> NormalizationResult:
        claimants, dispatch_errors = self._claimants(input_spec)
        if dispatch_errors:
            return self._failed(input_spec, dispatch_errors[0].message, parse_errors=dispatch_errors)

        if not claimants:
            return self._failed(input_spec, f"No parser found for input type: {input_spec.type}")

        if len(claimants) > 1:
            names = ", ".join(_parser_name(p) for p in claimants)
            error = ParsingError(
                code="AMBIGUOUS_PARSER",
                message=f"Multiple parsers claim input type {input_spec.type}: {names}",
            )
            return self._failed(input_spec, error.message, parse_errors=[error])

        parser = claimants[0]
        parse_result = self._run_parser(parser, input_spec)

        if not parse_result.success:
            message = parse_result.errors[0].message if parse_result.errors else "Parsing failed"
            return self._failed(
                input_spec, message, parse_errors=parse_result.errors, warnings=parse_result.warnings
            )

        if parse_result.normalized is None:
            return self._failed(input_spec, "Parser returned no normalized spec", warnings=parse_result.warnings)

        validation = validate_spec(parse_result.normalized, self.builtin_types)
        if not validation.valid:
            return self._failed(
                input_spec,
                f"Validation failed: {validation.errors[0].message}",
                validation_errors=validation.errors,
                warnings=[*parse_result.warnings, *(_as_note(w, True) for w in validation.warnings)],
            )

        logger.info(
            "Normalized %s with %s: %d types, %d operations",
            input_spec.source or input_spec.type,
            _parser_name(parser),
            len(parse_result.normalized.types),
            len(parse_result.normalized.operations),
        )
        return NormalizationResult(
            success=True,
            spec=parse_result.normalized,
            warnings=[*parse_result.warnings, *(_as_note(w, False) for w in validation.warnings)],
        )

    def _claimants(self, input_spec: InputSpec) -> tuple[list[SpecParser], list[ParsingError]]:
        claimants: list[SpecParser] = []
        for parser in self._parsers:
            try:
                claimed = parser.can_parse(input_spec)
            except Exception as e:
                logger.exception("can_parse failed in %s", _parser_name(parser))
                return [], [_exception_error(parser, "can_parse", e)]
            if claimed:
                claimants.append(parser)
                if not self.settings.strict_dispatch:
                    break
        return claimants, []

    def _run_parser(self, parser: SpecParser, input_spec: InputSpec) -> ParserResult:
        try:
            return parser.parse(input_spec)
        except Exception as e:
            # Registered parsers may not guard their own boundary
            logger.exception("parse failed in %s", _parser_name(parser))
            return ParserResult(success=False, errors=[_exception_error(parser, "parse", e)])

    def _failed(
        self,
        input_spec: InputSpec,
        error: str,
        parse_errors: list[ParsingError] | None = None,
        validation_errors: list[ValidationError] | None = None,
        warnings: list[NormalizationNote] | None = None,
    ) -> NormalizationResult:
        logger.warning("Normalization of %s failed: %s", input_spec.source or input_spec.type, error)
        return NormalizationResult(
            success=False,
            error=error,
            parse_errors=parse_errors,
            validation_errors=validation_errors,
            warnings=warnings or [],
        )


def normalize_input(input_spec: InputSpec, normalizer: InputNormalizer | None = None) -> NormalizationResult:
    """Normalize with the given normalizer, or a fresh one with the built-in parsers."""
    return (normalizer or InputNormalizer()).normalize(input_spec)
