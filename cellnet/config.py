"""Configuration settings for the cell network simulation.

Uses Pydantic Settings for validation and environment variable support.
All settings can be overridden via CELLNET_* environment variables.
"""

from pydantic_settings import BaseSettings


class NetworkConfig(BaseSettings):
    """Global configuration for the cell network."""

    seed: int | None = None  # None = nondeterministic

    # Arena
    grid_size: float = 500.0
    edge_margin: float = 10.0  # cells never move closer than this to an edge
    spawn_margin: float = 30.0  # min spacing between freshly placed cells
    spawn_attempts: int = 10
    clone_distance: float = 50.0  # min distance between parent and clone
    clone_jitter: float = 20.0
    clone_attempts: int = 20

    # Population
    max_cells: int = 50
    max_age: int = 99

    # History
    history_max_entries: int = 100
    position_trail_length: int = 20

    # Movement
    move_step: float = 10.0
    attraction_fraction: float = 0.6
    repulsion_radius: float = 40.0
    repulsion_strength: float = 0.5
    drift_magnitude: float = 1.0

    # Connectivity
    connection_radius: float = 150.0  # adjacency used by the router
    neighbor_radius: float = 100.0  # default radius for neighbor queries
    help_radius: float = 150.0

    # Sleep / wake
    idle_ticks_before_sleep: int = 10
    sleep_probability: float = 0.1  # per tick, once idle
    wake_probability: float = 0.05  # per tick, while sleeping
    conversation_window: int = 10  # history entries scanned for open conversations

    # Periodic behaviour
    self_check_interval: int = 20
    self_check_probability: float = 0.1
    clone_min_age: int = 15
    clone_age_modulo: int = 25
    clone_probability: float = 0.2

    # Messages
    max_messages: int = 50
    message_ttl_seconds: float = 3.0

    # Routing policy
    routing_min_content_length: int = 50
    route_to_sleeping_targets: bool = True
    network_condition: str = "Normal"

    # Deferred work
    work_delay_min_ticks: int = 1
    work_delay_max_ticks: int = 2
    max_tasks_per_drain: int = 100

    # Driver
    tick_interval_seconds: float = 1.5

    # LLM reasoning (any OpenAI-compatible endpoint)
    llm_enabled: bool = False
    llm_base_url: str = ""  # set via --llm-url or CELLNET_LLM_BASE_URL
    llm_api_key: str = ""  # set via --llm-key or CELLNET_LLM_API_KEY
    llm_model: str = "sonnet"
    llm_timeout_seconds: float = 20.0
    llm_max_tokens: int = 400

    # HTTP API
    api_host: str = "127.0.0.1"
    api_port: int = 8001

    model_config = {"env_prefix": "CELLNET_"}
