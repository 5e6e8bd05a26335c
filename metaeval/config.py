from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "metaeval"
    debug: bool = False
    log_level: str = "INFO"

    # LLM Provider (model-agnostic via LiteLLM)
    # Provider: "ollama", "anthropic", "openai"
    llm_provider: str = "ollama"
    # Ollama settings
    ollama_base_url: str = "http://localhost:11434"
    # API keys (only needed for cloud providers)
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    # Model name (LiteLLM format: "provider/model" or just "model" for Ollama)
    judge_model: str = "ollama/mistral:7b-instruct"

    # Oracle decoding
    judge_temperature: float = 0.1
    recommendation_temperature: float = 0.3
    improvement_temperature: float = 0.3
    improvement_max_tokens: int = 1500
    improvement_evidence_limit: int = 3
    oracle_timeout_seconds: float = 60.0

    # Aggregation: dimension name -> weight. Empty means unweighted mean.
    dimension_weights: dict[str, float] = {}

    # Refinement loop
    refinement_max_iterations: int = 2
    refinement_min_delta: float = 0.0

    # Self-evaluation strategy: "heuristic" | "oracle"
    self_evaluation_strategy: str = "heuristic"

    model_config = {"env_prefix": "METAEVAL_", "env_file": ".env"}


settings = Settings()
