"""
Risk Configuration Loader

Typed view of risk_config.yaml: z-score and stress scenario lookup tables,
alert thresholds, pre-trade order settings and the limits registered at
startup. Every section is optional and falls back to the defaults below.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Union, Any
from pathlib import Path
import yaml
import logging

from risk_engine.core.errors import ConfigError, ValidationError
from risk_engine.core.models.domain import RiskLimit

logger = logging.getLogger(__name__)


# =============================================================================
# Default lookup tables
# =============================================================================

DEFAULT_Z_SCORES: Dict[float, float] = {
    0.90: 1.282,
    0.95: 1.645,
    0.99: 2.326,
}

DEFAULT_SCENARIOS: Dict[str, float] = {
    'market_crash_20': -0.20,
    'market_correction_10': -0.10,
    'black_monday': -0.22,
    'covid_crash': -0.30,
    'tech_bubble_burst': -0.40,
    'bull_run_10': 0.10,        # Stress for short positions
}

DEFAULT_VOLATILITY_MULTIPLIERS: Dict[str, float] = {
    'INCREASING': 1.3,
    'STABLE': 1.0,
    'DECREASING': 0.7,
}


# =============================================================================
# Configuration Data Classes
# =============================================================================

@dataclass
class VaRConfig:
    """VaR configuration"""
    confidence_level: float = 0.95
    z_scores: Dict[float, float] = field(default_factory=lambda: dict(DEFAULT_Z_SCORES))
    z_score_method: str = "table"     # "table" or "exact"


@dataclass
class StressConfig:
    """Stress test and Monte Carlo settings"""
    scenarios: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SCENARIOS))
    strict: bool = False              # Unknown scenario -> error instead of zero shock
    default_iterations: int = 1000
    default_days: int = 1


@dataclass
class AlertConfig:
    """Predictive alert thresholds"""
    margin_call_threshold: float = 95.0   # utilization %
    breach_horizon_days: int = 5
    spike_sigma: float = 2.0
    volatility_multipliers: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_VOLATILITY_MULTIPLIERS)
    )


@dataclass
class PreTradeConfig:
    """Pre-trade order check settings"""
    max_order_value: Optional[float] = None
    max_order_var: float = 50000.0
    order_volatility: float = 0.02     # daily vol assumed for order VaR impact
    simulations: int = 1000


@dataclass
class RiskConfig:
    """
    Complete risk engine configuration.

    This is the main configuration object used throughout the engine.
    """
    var: VaRConfig = field(default_factory=VaRConfig)
    stress: StressConfig = field(default_factory=StressConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    pre_trade: PreTradeConfig = field(default_factory=PreTradeConfig)
    limits: List[RiskLimit] = field(default_factory=list)


# =============================================================================
# YAML Loading
# =============================================================================

PathLike = Union[str, Path]


class RiskConfigLoader:
    """
    Read risk_config.yaml into a RiskConfig and keep the last result.

    Usage:
        loader = RiskConfigLoader()
        config = loader.load()                       # first file found in search_paths
        config = loader.load('deploy/risk_config.yaml')

        loader.reload()                              # re-read the same file after an edit
        config.stress.scenarios['covid_crash']       # -0.30
    """

    # Working-directory override first, packaged defaults last
    search_paths = (
        Path('risk_config.yaml'),
        Path('config') / 'risk_config.yaml',
        Path(__file__).with_name('risk_config.yaml'),
    )

    def __init__(self):
        self.config: Optional[RiskConfig] = None
        self.source: Optional[Path] = None

    def load(self, config_path: Optional[PathLike] = None) -> RiskConfig:
        """
        Parse a config file and remember it as the current config.

        Raises:
            FileNotFoundError: config_path does not exist, or (without
                config_path) none of search_paths does
            ConfigError: the file is not YAML or a section does not fit its dataclass
        """
        path = self._resolve(config_path)
        self.config = self.parse(self._read_yaml(path))
        self.source = path

        logger.info(
            f"Risk config {path}: {len(self.config.stress.scenarios)} scenarios, "
            f"{len(self.config.limits)} limits, z-scores via {self.config.var.z_score_method}"
        )
        return self.config

    def get_config(self) -> RiskConfig:
        return self.config if self.config is not None else self.load()

    def reload(self) -> RiskConfig:
        return self.load(self.source)

    def _resolve(self, config_path: Optional[PathLike]) -> Path:
        if config_path is not None:
            path = Path(config_path)
            if not path.is_file():
                raise FileNotFoundError(f"Risk config not found: {path}")
            return path

        found = next((p for p in self.search_paths if p.is_file()), None)
        if found is None:
            searched = ", ".join(str(p) for p in self.search_paths)
            raise FileNotFoundError(f"No risk_config.yaml in: {searched}")
        return found

    @staticmethod
    def _read_yaml(path: Path) -> Any:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"{path} is not valid YAML: {e}") from e

    @staticmethod
    def parse(raw: Any) -> RiskConfig:
        """
        Build a RiskConfig from already-loaded YAML.

        Omitted sections keep their dataclass defaults; unknown keys inside
        a section are errors.
        """
        if not isinstance(raw, dict):
            raise ConfigError(f"Risk config root must be a mapping, got {type(raw).__name__}")

        try:
            var = dict(raw.get('var') or {})
            if 'z_scores' in var:
                var['z_scores'] = {float(k): float(v) for k, v in var['z_scores'].items()}

            stress = dict(raw.get('stress') or {})
            if 'scenarios' in stress:
                stress['scenarios'] = {str(k): float(v) for k, v in stress['scenarios'].items()}

            return RiskConfig(
                var=VaRConfig(**var),
                stress=StressConfig(**stress),
                alerts=AlertConfig(**(raw.get('alerts') or {})),
                pre_trade=PreTradeConfig(**(raw.get('pre_trade') or {})),
                limits=[RiskLimit.from_dict(entry) for entry in raw.get('limits') or []],
            )
        except (TypeError, ValueError, AttributeError, ValidationError) as e:
            raise ConfigError(f"Invalid risk configuration: {e}") from e


# =============================================================================
# Process-wide config
# =============================================================================

_loader = RiskConfigLoader()


def get_risk_config() -> RiskConfig:
    """
    Config shared by every service in the process, loaded on first use.

    Usage:
        from risk_engine.config.risk_config_loader import get_risk_config

        limits = get_risk_config().limits
    """
    return _loader.get_config()


def reload_risk_config() -> RiskConfig:
    """Re-read the shared config from the file it came from."""
    return _loader.reload()
