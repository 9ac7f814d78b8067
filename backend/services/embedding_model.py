"""Embedding model integration with Hugging Face Inference API."""
import time
import logging
from typing import List, Optional
import httpx
from config import HUGGINGFACE_API_KEY, EMBEDDING_MODEL

logger = logging.getLogger(__name__)

HF_INFERENCE_URL = "https://router.huggingface.co/hf-inference/models/{model}/pipeline/feature-extraction"


class EmbeddingModel:
    """Wrapper for Hugging Face Inference API embedding model."""

    def __init__(
        self,
        api_key: Optional[str] = HUGGINGFACE_API_KEY,
        model_name: str = EMBEDDING_MODEL,
        max_retries: int = 4,
        initial_delay: float = 2.0,
        timeout: float = 60.0
    ):
        """
        Initialize the embedding model client.

        Args:
            api_key: Hugging Face API key
            model_name: Model identifier (default: sentence-transformers/all-mpnet-base-v2)
            max_retries: Maximum attempts for 503 (model loading) and network errors
            initial_delay: Initial delay in seconds for exponential backoff
            timeout: Request timeout in seconds
        """
        if not api_key:
            raise ValueError("HUGGINGFACE_API_KEY environment variable is required")

        self.api_key = api_key
        self.model_name = model_name
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.timeout = timeout
        self.api_url = HF_INFERENCE_URL.format(model=model_name)

        logger.info(f"Initialized EmbeddingModel with model: {model_name}")

    def embed_text(self, text: str) -> List[float]:
        """
        Embed a single query or document string.

        Raises:
            ValueError: If text is empty
            RuntimeError: If the API request fails after all retries
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        return self._embed_with_retry([text])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Embed several texts in one API call.

        Empty strings are rejected rather than filtered so that the result
        always lines up index-for-index with the input.

        Raises:
            ValueError: If the list is empty or contains empty strings
            RuntimeError: If the API request fails after all retries
        """
        if not texts:
            raise ValueError("Texts list cannot be empty")

        empty = [i for i, t in enumerate(texts) if not t or not t.strip()]
        if empty:
            raise ValueError(f"Texts at positions {empty} are empty")

        embeddings = self._embed_with_retry(texts)
        if len(embeddings) != len(texts):
            raise RuntimeError(
                f"Expected {len(texts)} embeddings, received {len(embeddings)}"
            )
        return embeddings

    def _embed_with_retry(self, texts: List[str]) -> List[List[float]]:
        """
        Call the inference API, backing off exponentially on 503 and network errors.

        Free-tier models sleep when idle and answer 503 while loading.
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {"inputs": texts, "options": {"wait_for_model": True}}

        delay = self.initial_delay
        last_error = None

        for attempt in range(1, self.max_retries + 1):
            try:
                start_time = time.time()
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.api_url, headers=headers, json=payload)
                elapsed = time.time() - start_time

                if response.status_code == 503:
                    last_error = "Model is loading (503)"
                    logger.warning(
                        f"{last_error} on attempt {attempt}/{self.max_retries}, retrying in {delay}s"
                    )
                elif response.status_code == 429:
                    raise RuntimeError("Rate limit exceeded. Please try again later.")
                elif response.status_code == 401:
                    raise RuntimeError("Invalid API key")
                elif response.status_code != 200:
                    raise RuntimeError(
                        f"API request failed with status {response.status_code}: {response.text}"
                    )
                else:
                    logger.debug(f"Generated embeddings for {len(texts)} texts in {elapsed:.2f}s")
                    return response.json()

            except httpx.TimeoutException:
                last_error = f"Request timeout after {self.timeout}s"
                logger.warning(f"{last_error} on attempt {attempt}/{self.max_retries}")
            except httpx.RequestError as e:
                last_error = f"Network error: {str(e)}"
                logger.warning(f"{last_error} on attempt {attempt}/{self.max_retries}")

            if attempt < self.max_retries:
                time.sleep(delay)
                delay = min(delay * 2, 30.0)

        error_msg = f"Failed to generate embeddings after {self.max_retries} attempts. Last error: {last_error}"
        logger.error(error_msg)
        raise RuntimeError(error_msg)

    def warmup(self) -> bool:
        """Embed a dummy string so the hosted model is loaded before real traffic."""
        try:
            logger.info("Warming up embedding model...")
            start_time = time.time()
            self.embed_text("warmup query")
            logger.info(f"Model warmup completed in {time.time() - start_time:.1f}s")
            return True
        except (RuntimeError, ValueError) as e:
            logger.error(f"Model warmup failed: {str(e)}")
            return False
