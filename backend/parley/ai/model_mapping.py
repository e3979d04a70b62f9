"""
Model version and display name lookups.
"""

from typing import Optional


MODEL_DISPLAY_NAMES = {
    "gpt-4o-2024-08-06": "GPT-4o",
    "gemini-2.5-flash": "Gemini 2.5 Flash",
}

PROVIDER_MODEL_VERSIONS = {
    "openai": "gpt-4o-2024-08-06",
    "google": "gemini-2.5-flash",
}


def get_model_display_name(model_version: str) -> str:
    return MODEL_DISPLAY_NAMES.get(model_version, model_version)


def get_model_display_name_from_thread(model_version: Optional[str], provider: Optional[str]) -> str:
    """Prefer the stored model version; older threads only know their provider."""
    if model_version:
        return get_model_display_name(model_version)
    if provider in PROVIDER_MODEL_VERSIONS:
        return get_model_display_name(PROVIDER_MODEL_VERSIONS[provider])
    return "Unknown Model"


def get_model_version_from_provider(provider: str) -> str:
    return PROVIDER_MODEL_VERSIONS.get(provider, "")
