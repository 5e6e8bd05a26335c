"""Oracle access layer.

- types.py: Oracle + telemetry protocol interfaces
- llm_client.py: Model-agnostic oracle client (LiteLLM)
"""
