from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "BESSIM_", "case_sensitive": False}

    # Tariffs ($/kWh)
    default_import_rate: float = 0.15
    default_export_rate: float = 0.05
    default_tou_rate: float = 0.15
    # Baseline sell price for TOU evaluation, as a fraction of the buy rate
    tou_feed_in_fraction: float = 0.3

    # Simulation
    initial_soc_percent: float = 50.0

    # Time-of-use threshold search
    tou_max_iterations: int = 100
    tou_learning_rate: float = 0.05

    # Peak-shaving grid search
    peak_search_points: int = 21
    peak_search_low_fraction: float = 0.5
    peak_search_high_fraction: float = 0.95
    demand_charge_days: int = 30

    # Battery sizing
    size_search_candidates: int = 10
    size_min_kwh: float = 0.1
    size_c_rate: float = 0.5
    size_installation_cost: float = 1000.0
    size_discount_rate: float = 0.05
    size_replacement_cost_factor: float = 0.8

    # Economics
    om_cost_fraction: float = 0.01
    replacement_price_decline: float = 0.05

    # Logging
    log_json: bool = False
    log_level: str = "INFO"


settings = Settings()
