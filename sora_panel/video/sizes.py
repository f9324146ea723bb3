"""Supported output resolutions per Sora model and size negotiation."""

import re
from collections.abc import Sequence
from dataclasses import dataclass

from sora_panel.config import DEFAULT_MODEL
from sora_panel.core.exceptions import InvalidArgumentError


@dataclass(frozen=True)
class SizeRule:
    """One output resolution accepted by the API."""

    label: str  # "WIDTHxHEIGHT"
    width: int
    height: int

    @property
    def is_landscape(self) -> bool:
        return self.width >= self.height

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


SizeRuleSet = tuple[SizeRule, ...]


def _rule(width: int, height: int) -> SizeRule:
    return SizeRule(label=f"{width}x{height}", width=width, height=height)


# First entry of each rule set is the model's default size
MODEL_SIZE_RULES: dict[str, SizeRuleSet] = {
    "sora-2": (
        _rule(1280, 720),
        _rule(720, 1280),
    ),
    "sora-2-pro": (
        _rule(1280, 720),
        _rule(720, 1280),
        _rule(1024, 1792),
        _rule(1792, 1024),
    ),
}

DEFAULT_SIZE_RULES: SizeRuleSet = MODEL_SIZE_RULES[DEFAULT_MODEL]

_SIZE_PATTERN = re.compile(r"^(\d+)x(\d+)$")


def get_size_rules(model: str | None) -> SizeRuleSet:
    """Get the rule set for a model, falling back to the default model's."""
    if not model:
        return DEFAULT_SIZE_RULES
    return MODEL_SIZE_RULES.get(model, DEFAULT_SIZE_RULES)


def choose_size(width: int, height: int, rules: Sequence[SizeRule] = DEFAULT_SIZE_RULES) -> SizeRule:
    """
    Pick the supported size closest to the given pixel dimensions.

    Rules sharing the input's orientation are preferred (square counts as
    landscape); if none do, every rule is a candidate. Among candidates the
    rule with the smallest aspect-ratio difference wins, and on an exact tie
    the rule listed first wins.

    Raises:
        InvalidArgumentError: If the dimensions are not positive or rules is empty
    """
    if not rules:
        raise InvalidArgumentError("choose_size requires at least one size rule.")
    if width <= 0 or height <= 0:
        raise InvalidArgumentError(f"Invalid dimensions {width}x{height}.")

    is_landscape = width >= height
    ratio = width / height
    pool = [rule for rule in rules if rule.is_landscape == is_landscape] or list(rules)

    best = pool[0]
    best_score = float("inf")
    for rule in pool:
        score = abs(rule.aspect_ratio - ratio)
        if score < best_score:
            best = rule
            best_score = score

    return best


def normalize_size_label(value: object) -> str:
    """Normalize user input such as " 1280 X 720 " into "1280x720"."""
    text = str(value or "").lower()
    text = re.sub(r"\s+", "", text)
    text = re.sub(r"[^0-9x]", "", text)
    return re.sub(r"x+", "x", text)


def coerce_size_to_supported(size: object, rules: Sequence[SizeRule] = DEFAULT_SIZE_RULES) -> str:
    """
    Map a free-form size string onto a supported size label.

    Exact matches are returned as is, other "WxH" values resolve to the
    closest supported size, and anything unparseable falls back to the
    rule set's default.
    """
    if not rules:
        raise InvalidArgumentError("coerce_size_to_supported requires at least one size rule.")

    normalized = normalize_size_label(size)
    for rule in rules:
        if rule.label == normalized:
            return rule.label

    match = _SIZE_PATTERN.match(normalized)
    if match:
        width, height = int(match.group(1)), int(match.group(2))
        if width > 0 and height > 0:
            return choose_size(width, height, rules).label

    return rules[0].label
