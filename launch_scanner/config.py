from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Database
    database_url: str = "sqlite+aiosqlite:///launch_scanner.db"

    # Virtuals Protocol launchpad API
    virtuals_api_base: str = "https://api.virtuals.io/api/virtuals"
    virtuals_profile_api_base: str = "https://api.virtuals.io/api/profile"
    virtuals_app_base: str = "https://app.virtuals.io"
    virtuals_listener_enabled: bool = True
    virtuals_poll_interval_seconds: int = 300  # 5 minutes
    virtuals_page_size: int = 20
    virtuals_request_timeout_seconds: float = 30.0
    # Genesis sub-states that are worth ingesting; anything else is skipped
    genesis_allowed_states: list[str] = ["STARTED", "FINALIZED"]

    # Debug: process a single launch id on startup instead of only polling
    debug_launch_id: str = ""
    debug_delete_existing: bool = False

    # Chains
    base_rpc_url: str = "https://mainnet.base.org"
    base_rpc_api_key: str = ""  # appended as a path segment when set
    solana_rpc_url: str = "https://api.mainnet-beta.solana.com"
    helius_api_key: str = ""  # when set, Helius replaces solana_rpc_url
    chain_request_timeout_seconds: float = 20.0
    chain_max_retries: int = 3
    transfer_lookback_blocks: int = 200_000
    transfer_log_chunk_blocks: int = 10_000
    solana_signature_limit: int = 100
    evm_lock_addresses: list[str] = []
    solana_lock_addresses: list[str] = []
    # A single outgoing transfer above this fraction of the holder balance is flagged
    movement_threshold: float = 0.05

    # Content fetching (Firecrawl)
    firecrawl_api_base: str = "https://api.firecrawl.dev/v1"
    firecrawl_api_key: str = ""
    crawl_poll_attempts: int = 6
    crawl_poll_base_delay_seconds: float = 2.0
    crawl_max_pages: int = 12
    custom_link_max_pages: int = 11
    fetched_content_max_length: int = 50_000
    content_request_timeout_seconds: float = 60.0

    # LLM scoring (optional, leave blank to disable)
    anthropic_api_key: str = ""
    llm_models: list[str] = ["claude-sonnet-4-5-20250929", "claude-3-5-haiku-latest"]
    llm_max_tokens: int = 1500

    # Upsert policy
    overwrite_existing_launches: bool = True
    force_llm_rescoring: bool = True

    # Telegram Bot (push notifications)
    notifications_enabled: bool = True
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    telegram_topic_id: int = 0  # forum topic (message_thread_id), 0 = none

    # Cache invalidation for an out-of-process read view (empty = in-process only)
    revalidate_url: str = ""

    # Web
    web_enabled: bool = True
    web_host: str = "0.0.0.0"
    web_port: int = 8888

    # Logging
    log_level: str = "INFO"


settings = Settings()
