from pydantic_settings import BaseSettings

_IBB_DATASET = "https://data.ibb.gov.tr/en/dataset/8540e256-6df5-4719-85bc-e64e91508ede/resource"


class Settings(BaseSettings):
    stops_url: str = f"{_IBB_DATASET}/2299bc82-983b-4bdf-8520-5cef8c555e29/download/stops.csv"
    routes_url: str = f"{_IBB_DATASET}/46dbe388-c8c2-45c4-ac72-c06953de56a2/download/routes.csv"
    trips_url: str = f"{_IBB_DATASET}/7ff49bdd-b0d2-4a6e-9392-b598f77f5070/download/trips.csv"
    stop_times_url: str = f"{_IBB_DATASET}/23778613-16fe-4d30-b8b8-8ca934ed2978/download/stop_times.csv"
    fleet_service_url: str = "https://api.ibb.gov.tr/iett/FiloDurum/SeferGerceklesme.asmx"
    osrm_base_url: str = "https://router.project-osrm.org"

    request_timeout_seconds: float = 20.0
    verify_ssl: bool = False
    feed_max_retries: int = 2

    schedule_ttl_seconds: int = 600
    live_feed_ttl_seconds: int = 30
    route_code_ttl_seconds: int = 300
    route_code_request_delay_seconds: float = 0.2
    route_code_refresh_enabled: bool = True
    # Busiest lines only, the fleet service throttles per-route queries
    popular_route_codes: list[str] = [
        "500T", "34", "34A", "34G", "34Z", "133F", "122", "145T",
        "59C", "59T", "59Y", "29C", "29D", "29T",
        "25A", "25G", "26", "27A", "27E", "28T",
        "46", "46C", "46T", "47", "47E", "48T", "40T", "41E", "42T",
    ]

    arrival_search_radius_m: float = 2000.0
    max_arrivals: int = 10
    assumed_bus_speed_kmh: float = 20.0

    model_config = {"env_prefix": "", "case_sensitive": False}


settings = Settings()
