"""
Configuration loaded from environment variables. Fail-fast on invalid values.
"""

from typing import Literal

from pydantic_settings import BaseSettings
from pydantic import Field, model_validator


class Config(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "frozen": True, "extra": "ignore"}

    # Monitoring thresholds (seed values for the dynamic parameters)
    poll_interval_sec: float = Field(default=5.0, gt=0)
    min_spread_threshold: float = Field(default=0.005, gt=0, lt=1.0)
    min_profit_threshold: float = Field(default=0.1, gt=0)
    default_trade_amount: float = Field(default=1000.0, gt=0)
    max_slippage: float = Field(default=0.01, gt=0, le=1.0)
    initial_risk_tolerance: float = Field(default=0.5, ge=0.0, le=1.0)

    # Fee model used for the detector's naive profit estimate
    gas_estimate: float = Field(default=0.001, ge=0)
    flash_loan_fee_rate: float = Field(default=0.0009, ge=0, lt=1.0)  # 0.09% flash loan fee
    opportunity_ttl_sec: float = Field(default=30.0, gt=0)
    # Pairs below coarse_spread_factor * min_spread_threshold are dropped at detection
    coarse_spread_factor: float = Field(default=0.5, gt=0, le=1.0)

    # Scoring weights (must sum to 1.0)
    weight_spread: float = Field(default=0.20, ge=0, le=1.0)
    weight_liquidity: float = Field(default=0.20, ge=0, le=1.0)
    weight_profit: float = Field(default=0.25, ge=0, le=1.0)
    weight_volatility: float = Field(default=0.10, ge=0, le=1.0)
    weight_gas_efficiency: float = Field(default=0.15, ge=0, le=1.0)
    weight_historical: float = Field(default=0.10, ge=0, le=1.0)

    # Scoring scales
    spread_score_multiple: float = Field(default=3.0, gt=0)  # spread score hits 100 at 3x min spread
    liquidity_depth_multiple: float = Field(default=20.0, gt=0)
    profit_score_scale: float = Field(default=25.0, gt=0)
    volatility_penalty: float = Field(default=1000.0, ge=0)
    gas_efficiency_scale: float = Field(default=10.0, gt=0)
    neutral_historical_score: float = Field(default=50.0, ge=0, le=100.0)
    low_liquidity_confidence_discount: float = Field(default=0.8, ge=0, le=1.0)
    stale_confidence_discount: float = Field(default=0.9, ge=0, le=1.0)
    stale_confidence_age_sec: float = Field(default=10.0, ge=0)

    # Risk assessment
    liquidity_risk_scale: float = Field(default=200.0, gt=0)
    slippage_risk_scale: float = Field(default=100.0, gt=0)
    gas_risk_scale: float = Field(default=100.0, gt=0)
    execution_base_risk: float = Field(default=20.0, ge=0, le=100.0)
    execution_age_risk_cap: float = Field(default=30.0, ge=0, le=100.0)
    risk_warning_threshold: float = Field(default=50.0, ge=0, le=100.0)
    overall_risk_warning_threshold: float = Field(default=70.0, ge=0, le=100.0)

    # Decision gate
    min_score: float = Field(default=60.0, ge=0, le=100.0)
    min_confidence: float = Field(default=0.7, ge=0, le=1.0)

    # Sizing: never trade more than this fraction of the thinner pool
    max_liquidity_fraction: float = Field(default=0.05, gt=0, le=1.0)

    # Circuit breaker
    max_consecutive_failures: int = Field(default=5, gt=0)
    max_daily_loss: float = Field(default=10.0, gt=0)
    max_position_size: float = Field(default=1000.0, gt=0)
    loss_window_hours: float = Field(default=24.0, gt=0)

    # Execution
    execution_enabled: bool = True
    # "global": one attempt in flight process-wide; "opportunity": one per opportunity id
    single_flight_scope: Literal["global", "opportunity"] = "global"

    # Parameter tuner
    tune_every_n: int = Field(default=10, gt=0)
    tune_window: int = Field(default=50, gt=0)
    history_size: int = Field(default=100, ge=10)
    risk_tolerance_step: float = Field(default=0.05, gt=0, le=0.5)
    risk_tolerance_floor: float = Field(default=0.3, ge=0, le=1.0)
    risk_tolerance_ceiling: float = Field(default=0.7, ge=0, le=1.0)
    high_success_rate: float = Field(default=0.8, ge=0, le=1.0)
    low_success_rate: float = Field(default=0.5, ge=0, le=1.0)

    # Paper feed (mock pools around these pairs)
    paper_pairs: str = "SUI/USDC,DEEP/SUI"
    paper_pools_per_pair: int = Field(default=3, ge=2, le=10)
    paper_base_liquidity: float = Field(default=100_000.0, gt=0)
    paper_price_jitter: float = Field(default=0.02, ge=0, le=0.5)
    paper_submit_failure_rate: float = Field(default=0.0, ge=0, le=1.0)

    # Logging + persistence
    log_level: str = "INFO"
    log_dir: str = "logs"
    ledger_path: str = "logs/transactions.jsonl"
    store_db: str = "sentinel.db"

    # Status server
    report_host: str = "127.0.0.1"
    report_port: int = Field(default=8787, gt=0, lt=65536)

    @model_validator(mode="after")
    def _check_weights(self) -> "Config":
        total = (
            self.weight_spread + self.weight_liquidity + self.weight_profit
            + self.weight_volatility + self.weight_gas_efficiency + self.weight_historical
        )
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total:.4f}")
        if self.risk_tolerance_floor > self.risk_tolerance_ceiling:
            raise ValueError("risk_tolerance_floor must not exceed risk_tolerance_ceiling")
        if self.low_success_rate > self.high_success_rate:
            raise ValueError("low_success_rate must not exceed high_success_rate")
        return self


def paper_pairs(cfg: Config) -> list[tuple[str, str]]:
    """Parse PAPER_PAIRS ("A/B,C/D") into (asset_a, asset_b) tuples."""
    pairs: list[tuple[str, str]] = []
    for raw in cfg.paper_pairs.split(","):
        raw = raw.strip()
        if not raw or "/" not in raw:
            continue
        a, b = (p.strip().upper() for p in raw.split("/", 1))
        if a and b and a != b:
            pairs.append((a, b))
    return pairs


def load_config() -> Config:
    """Load and validate config from environment. Raises on invalid fields."""
    return Config()
