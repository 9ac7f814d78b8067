"""Integration tests against the real Hugging Face and Groq APIs (optional).

Skipped unless the corresponding API keys are set in the environment.
"""
import sys
from pathlib import Path
import pytest

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from config import ChatConfig, GROQ_API_KEY, HUGGINGFACE_API_KEY
from services.embedding_model import EmbeddingModel
from services.llm_client import LLMClient
from services.prompt_builder import assemble_prompt, build_instructions


@pytest.mark.skipif(not HUGGINGFACE_API_KEY, reason="HUGGINGFACE_API_KEY not set")
class TestEmbeddingIntegration:
    """Integration tests with real Hugging Face API."""

    def test_real_embed_batch(self):
        results = EmbeddingModel().embed_batch(["Nick studied computer science.", "He enjoys climbing."])

        # all-mpnet-base-v2 produces 768-dimensional embeddings
        assert len(results) == 2
        assert all(len(embedding) == 768 for embedding in results)


@pytest.mark.skipif(not GROQ_API_KEY, reason="GROQ_API_KEY not set in environment")
class TestLLMClientIntegration:
    """Integration tests for LLMClient with real Groq API."""

    def test_generate_grounded_answer(self):
        config = ChatConfig.from_env()
        prompt = assemble_prompt(
            build_instructions(config.owner_name, config.assistant_name),
            [],
            [],
            "Hi, who are you?"
        )

        response = LLMClient(config).generate(prompt, max_tokens=80)

        assert response.text
        assert response.tokens_output > 0
