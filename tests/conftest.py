"""Pytest helpers for path configuration and shared settings factories."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))


def _openai_fields(api_key: str = "sk-key-a", model: str = "gpt-4", embedding: str = "text-embedding-3-small", **extra: Any) -> dict[str, Any]:
    fields = {
        "openAIApiKey": api_key,
        "openAIBaseURL": "https://api.openai.com/v1",
        "openAITextGenModel": model,
        "openAIEmbeddingModel": embedding,
    }
    fields.update(extra)
    return fields


def _ollama_fields(model: str = "llama2", embedding: str = "nomic-embed-text", **extra: Any) -> dict[str, Any]:
    fields = {
        "ollamaBaseURL": "http://localhost:11434",
        "ollamaTextGenModel": model,
        "ollamaEmbeddingModel": embedding,
    }
    fields.update(extra)
    return fields


@pytest.fixture
def openai_fields() -> Callable[..., dict[str, Any]]:
    """Factory for the flat OpenAI fields of the legacy layout."""

    return _openai_fields


@pytest.fixture
def ollama_fields() -> Callable[..., dict[str, Any]]:
    return _ollama_fields


@pytest.fixture
def legacy_entry() -> Callable[..., dict[str, Any]]:
    """Factory for a consensus/council entry carrying embedded settings."""

    def _make(
        entry_id: str,
        provider: str,
        settings: dict[str, Any],
        *,
        weight: float = 1.0,
        enabled: bool = True,
    ) -> dict[str, Any]:
        return {
            "id": entry_id,
            "provider": provider,
            "settings": settings,
            "weight": weight,
            "enabled": enabled,
        }

    return _make


@pytest.fixture
def scenario_settings() -> dict[str, Any]:
    """Main OpenAI model plus a consensus list duplicating it next to an Ollama model."""

    return {
        "provider": "OPENAI",
        **_openai_fields(),
        **_ollama_fields(),
        "consensusSettings": {
            "enabled": True,
            "minAgreement": 2,
            "consensusModels": [
                {
                    "id": "consensus-openai",
                    "provider": "OPENAI",
                    "settings": _openai_fields(),
                    "weight": 1.2,
                    "enabled": True,
                },
                {
                    "id": "consensus-ollama",
                    "provider": "OLLAMA",
                    "settings": _ollama_fields(),
                    "weight": 1.0,
                    "enabled": False,
                },
            ],
        },
    }


@pytest.fixture
def council_settings() -> dict[str, Any]:
    """Legacy council with three members, a configured chair and phase timeouts."""

    return {
        "provider": "OLLAMA",
        **_ollama_fields(),
        "councilSettings": {
            "enabled": True,
            "phaseTimeouts": {"parallelExecution": 60000, "critique": 60000, "ranking": 60000, "synthesis": 60000},
            "councilModels": [
                {
                    "id": "council-a",
                    "provider": "OPENAI",
                    "settings": _openai_fields(model="gpt-4o"),
                    "weight": 1.0,
                    "enabled": True,
                },
                {
                    "id": "council-b",
                    "provider": "OLLAMA",
                    "settings": _ollama_fields(model="mistral"),
                    "weight": 0.8,
                    "enabled": True,
                },
                {
                    "id": "council-c",
                    "provider": "OPENAI",
                    "settings": _openai_fields(model="gpt-4o-mini"),
                    "weight": 0.5,
                    "enabled": False,
                },
            ],
            "chairModel": {
                "selectionStrategy": "configured",
                "configuredChairId": "council-b",
                "synthesisWeight": 1.0,
            },
        },
    }
