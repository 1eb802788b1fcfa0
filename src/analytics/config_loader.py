"""Load, validate, and hot-reload the Flarewise analytics configuration.

The config lives in ``analytics_config.yaml`` alongside this module.  At
startup it is loaded once and cached.  Call ``reload_analytics_config()`` to
re-read from disk after an admin update; no restart required.

Engine entry points never read thresholds from module globals: they receive an
``AnalyticsConfig`` explicitly, and ``with_overrides()`` returns a per-call
copy so a caller can change one threshold without touching the shared one.

Usage::

    from src.analytics.config_loader import get_analytics_config

    config = get_analytics_config()
    config.thresholds.min_reportable          # 3
    config.correlation.lag_hours              # (0, 6, 12, 24, 48)
    strict = config.with_overrides(weak_threshold=0.5)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from src.analytics.base import AggregationMode, EventKind

logger = logging.getLogger("flarewise.analytics.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "analytics_config.yaml"

_DEFAULT_LAGS = (0, 6, 12, 24, 48)

_DEFAULT_AGGREGATION: dict[EventKind, AggregationMode] = {
    EventKind.FOOD: AggregationMode.COUNT,
    EventKind.TRIGGER: AggregationMode.COUNT,
    EventKind.MEDICATION: AggregationMode.COUNT,
    EventKind.SYMPTOM: AggregationMode.MEAN_INTENSITY,
    EventKind.FLARE: AggregationMode.MEAN_INTENSITY,
}


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClassifierThresholds:
    """Strength / confidence buckets and the minimum reportable sample size."""

    strong: float = 0.7
    moderate: float = 0.3
    high_confidence: int = 20
    medium_confidence: int = 10
    min_reportable: int = 3


@dataclass(frozen=True)
class CorrelationConfig:
    """Lag search and feed filtering settings."""

    lag_hours: tuple[int, ...] = _DEFAULT_LAGS
    weak_threshold: float = 0.3
    top_insights: int = 5
    aggregation: dict[EventKind, AggregationMode] = field(
        default_factory=lambda: dict(_DEFAULT_AGGREGATION)
    )

    def aggregation_mode(self, kind: EventKind) -> AggregationMode:
        return self.aggregation.get(kind, AggregationMode.COUNT)


@dataclass(frozen=True)
class TrendConfig:
    """Monthly flare trend regression settings."""

    min_buckets: int = 3
    slope_deadband: float = 0.1


@dataclass(frozen=True)
class WindowConfig:
    """Analysis window settings."""

    all_time_lookback_days: int = 1825


# Flat override names accepted by AnalyticsConfig.with_overrides()
_OVERRIDE_FIELDS: dict[str, tuple[str, str]] = {
    "strong_threshold": ("thresholds", "strong"),
    "moderate_threshold": ("thresholds", "moderate"),
    "high_confidence_sample_size": ("thresholds", "high_confidence"),
    "medium_confidence_sample_size": ("thresholds", "medium_confidence"),
    "min_reportable_sample_size": ("thresholds", "min_reportable"),
    "lag_hours": ("correlation", "lag_hours"),
    "weak_threshold": ("correlation", "weak_threshold"),
    "top_insights": ("correlation", "top_insights"),
    "min_trend_buckets": ("trend", "min_buckets"),
    "trend_deadband": ("trend", "slope_deadband"),
    "all_time_lookback_days": ("windows", "all_time_lookback_days"),
}


@dataclass(frozen=True)
class AnalyticsConfig:
    """Complete, validated analytics configuration.

    This is the single in-memory representation of analytics_config.yaml.

    Attributes:
        version:      Config schema version string.
        thresholds:   Classifier thresholds and minimum reportable n.
        correlation:  Lag candidates, aggregation modes, feed filtering.
        trend:        Trend regression settings.
        windows:      Analysis window settings.
    """

    version: str = "1.0"
    thresholds: ClassifierThresholds = field(default_factory=ClassifierThresholds)
    correlation: CorrelationConfig = field(default_factory=CorrelationConfig)
    trend: TrendConfig = field(default_factory=TrendConfig)
    windows: WindowConfig = field(default_factory=WindowConfig)
    _raw: dict = field(default_factory=dict, repr=False, compare=False)

    def with_overrides(self, **overrides: Any) -> AnalyticsConfig:
        """Return a copy with the given flat settings replaced.

        Args:
            **overrides: Any of ``strong_threshold``, ``moderate_threshold``,
                ``high_confidence_sample_size``, ``medium_confidence_sample_size``,
                ``min_reportable_sample_size``, ``lag_hours``, ``weak_threshold``,
                ``top_insights``, ``min_trend_buckets``, ``trend_deadband``,
                ``all_time_lookback_days``.

        Returns:
            A new AnalyticsConfig.  ``self`` is untouched.

        Raises:
            TypeError: On an unknown override name.
            ConfigValidationError: If the resulting config is invalid.
        """
        sections: dict[str, dict[str, Any]] = {}
        for name, value in overrides.items():
            if name not in _OVERRIDE_FIELDS:
                raise TypeError(f"Unknown analytics config override: {name!r}")
            section, attr = _OVERRIDE_FIELDS[name]
            if attr == "lag_hours":
                value = tuple(sorted(set(int(v) for v in value)))
            sections.setdefault(section, {})[attr] = value

        updated = replace(
            self,
            **{
                section: replace(getattr(self, section), **changes)
                for section, changes in sections.items()
            },
        )
        errors = _check_config(updated)
        if errors:
            raise ConfigValidationError(_format_errors(errors))
        return updated


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when analytics_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    try:
        import yaml  # pyyaml
    except ImportError as exc:
        raise ImportError(
            "pyyaml is required for config loading. Install with: pip install pyyaml"
        ) from exc

    if not path.exists():
        raise FileNotFoundError(f"Analytics config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            return yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc


def _check_config(config: AnalyticsConfig) -> list[str]:
    """Cross-field checks shared by the YAML loader and with_overrides()."""
    errors: list[str] = []
    t = config.thresholds

    for name, value in (("strong", t.strong), ("moderate", t.moderate)):
        if not (0.0 <= value <= 1.0):
            errors.append(f"classification.strength.{name} = {value} is out of range [0.0, 1.0]")
    if t.moderate > t.strong:
        errors.append(
            f"classification.strength.moderate ({t.moderate}) exceeds strong ({t.strong})"
        )
    if t.medium_confidence > t.high_confidence:
        errors.append(
            "classification.confidence.medium_sample_size "
            f"({t.medium_confidence}) exceeds high_sample_size ({t.high_confidence})"
        )
    if t.min_reportable < 2:
        errors.append(
            f"classification.min_reportable_sample_size must be >= 2, got {t.min_reportable}"
        )

    c = config.correlation
    if not c.lag_hours:
        errors.append("correlation.lag_hours must list at least one lag")
    elif any(lag < 0 for lag in c.lag_hours):
        errors.append(f"correlation.lag_hours must be non-negative, got {list(c.lag_hours)}")
    if not (0.0 <= c.weak_threshold <= 1.0):
        errors.append(f"correlation.weak_threshold = {c.weak_threshold} is out of range [0.0, 1.0]")
    if c.top_insights < 1:
        errors.append(f"correlation.top_insights must be >= 1, got {c.top_insights}")

    if config.trend.min_buckets < 2:
        errors.append(f"trend.min_monthly_buckets must be >= 2, got {config.trend.min_buckets}")
    if config.trend.slope_deadband < 0:
        errors.append(f"trend.slope_deadband must be >= 0, got {config.trend.slope_deadband}")

    if config.windows.all_time_lookback_days < 1:
        errors.append(
            "windows.all_time_lookback_days must be >= 1, "
            f"got {config.windows.all_time_lookback_days}"
        )
    return errors


def _format_errors(errors: list[str]) -> str:
    return f"analytics config has {len(errors)} validation error(s):\n" + "\n".join(
        f"  • {e}" for e in errors
    )


def _validate_and_build(raw: dict) -> AnalyticsConfig:
    """Validate the raw YAML dict and construct an AnalyticsConfig.

    Performs structural validation and applies defaults for optional fields.

    Raises:
        ConfigValidationError: If fields are missing or invalid.
    """
    errors: list[str] = []

    def _number(section: dict, key: str, path: str, default: float, cast: type = float) -> Any:
        value = section.get(key, default)
        try:
            return cast(value)
        except (TypeError, ValueError):
            errors.append(f"{path}.{key} must be a number, got {value!r}")
            return default

    version = str(raw.get("version", "1.0"))

    # ── Classification ──
    cls_raw = raw.get("classification") or {}
    strength_raw = cls_raw.get("strength") or {}
    confidence_raw = cls_raw.get("confidence") or {}
    thresholds = ClassifierThresholds(
        strong=_number(strength_raw, "strong", "classification.strength", 0.7),
        moderate=_number(strength_raw, "moderate", "classification.strength", 0.3),
        high_confidence=_number(
            confidence_raw, "high_sample_size", "classification.confidence", 20, int
        ),
        medium_confidence=_number(
            confidence_raw, "medium_sample_size", "classification.confidence", 10, int
        ),
        min_reportable=_number(
            cls_raw, "min_reportable_sample_size", "classification", 3, int
        ),
    )

    # ── Correlation ──
    corr_raw = raw.get("correlation") or {}
    lags_raw = corr_raw.get("lag_hours", list(_DEFAULT_LAGS))
    lag_hours: tuple[int, ...] = ()
    if not isinstance(lags_raw, list):
        errors.append(f"correlation.lag_hours must be a list, got {lags_raw!r}")
    else:
        try:
            lag_hours = tuple(sorted({int(v) for v in lags_raw}))
        except (TypeError, ValueError):
            errors.append(f"correlation.lag_hours must contain integers, got {lags_raw!r}")

    aggregation = dict(_DEFAULT_AGGREGATION)
    for kind_name, mode_name in (corr_raw.get("aggregation") or {}).items():
        try:
            kind = EventKind(kind_name)
        except ValueError:
            errors.append(f"correlation.aggregation.{kind_name} is not a known event kind")
            continue
        try:
            aggregation[kind] = AggregationMode(mode_name)
        except ValueError:
            errors.append(
                f"correlation.aggregation.{kind_name} must be one of "
                f"{[m.value for m in AggregationMode]}, got {mode_name!r}"
            )

    correlation = CorrelationConfig(
        lag_hours=lag_hours,
        weak_threshold=_number(corr_raw, "weak_threshold", "correlation", 0.3),
        top_insights=_number(corr_raw, "top_insights", "correlation", 5, int),
        aggregation=aggregation,
    )

    # ── Trend ──
    trend_raw = raw.get("trend") or {}
    trend = TrendConfig(
        min_buckets=_number(trend_raw, "min_monthly_buckets", "trend", 3, int),
        slope_deadband=_number(trend_raw, "slope_deadband", "trend", 0.1),
    )

    # ── Windows ──
    win_raw = raw.get("windows") or {}
    windows = WindowConfig(
        all_time_lookback_days=_number(win_raw, "all_time_lookback_days", "windows", 1825, int),
    )

    config = AnalyticsConfig(
        version=version,
        thresholds=thresholds,
        correlation=correlation,
        trend=trend,
        windows=windows,
        _raw=raw,
    )

    if not errors:
        errors.extend(_check_config(config))
    if errors:
        raise ConfigValidationError(_format_errors(errors))

    # Lags of a week or more leave too few aligned pairs in the 7d window
    if lag_hours and lag_hours[-1] >= 24 * 7:
        logger.warning(
            "Largest configured lag is %dh; 7d analyses will report insufficient data",
            lag_hours[-1],
        )

    return config


def load_analytics_config(path: Path | None = None) -> AnalyticsConfig:
    """Load and validate the analytics config from disk.

    Args:
        path: Override path to YAML. Uses the bundled analytics_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded analytics config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: AnalyticsConfig | None = None
_config_lock = threading.Lock()


def get_analytics_config() -> AnalyticsConfig:
    """Return the global AnalyticsConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_analytics_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_analytics_config()
    return _config


def reload_analytics_config(path: Path | None = None) -> AnalyticsConfig:
    """Reload the analytics config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_analytics_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info(
        "Reloaded analytics config: %s → %s",
        old_version,
        new_config.version,
    )
    return new_config
