from __future__ import annotations
from typing import Dict, List, Tuple

# (model id, display name) per cloud provider; Ollama models are listed live
MODELS: Dict[str, List[Tuple[str, str]]] = {
    "openai": [
        ("gpt-4o", "GPT-4o"),
        ("gpt-4-turbo-preview", "GPT-4 Turbo"),
        ("gpt-4", "GPT-4"),
        ("gpt-3.5-turbo", "GPT-3.5 Turbo"),
    ],
    "anthropic": [
        ("claude-sonnet-4-5-20250514", "Claude Sonnet 4.5"),
        ("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet"),
        ("claude-3-opus-20240229", "Claude 3 Opus"),
        ("claude-haiku-4-20250514", "Claude Haiku 4"),
        ("claude-3-haiku-20240307", "Claude 3 Haiku"),
    ],
    "deepseek": [
        ("deepseek-chat", "DeepSeek Chat (V3)"),
        ("deepseek-coder", "DeepSeek Coder"),
    ],
    "qwen": [
        ("qwen-max", "Qwen Max"),
        ("qwen-plus", "Qwen Plus"),
        ("qwen-turbo", "Qwen Turbo"),
    ],
    "gemini": [
        ("gemini-2.0-flash-exp", "Gemini 2.0 Flash"),
        ("gemini-1.5-pro", "Gemini 1.5 Pro"),
        ("gemini-1.5-flash", "Gemini 1.5 Flash"),
    ],
    "ollama": [],
}


def known_models(provider: str) -> List[Tuple[str, str]]:
    return list(MODELS.get(provider.lower(), []))
