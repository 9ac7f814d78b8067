"""Response quality evaluation: LLM-as-judge scores plus heuristic flags."""
import json
import logging
import re
from typing import Any, Dict, List, Sequence, Set

from config import ChatConfig
from models.document import ScoredDocument
from models.evaluation import EvaluationResult, SCORE_NAMES
from services.errors import EvaluationFailedError
from services.llm_client import LLMClient, LLMClientError

logger = logging.getLogger(__name__)

MIN_SCORE = 1.0
MAX_SCORE = 10.0
DEFAULT_SCORE = 5.0
DOCUMENT_EXCERPT_CHARS = 800

JUDGE_PROMPT = """You are an expert evaluator assessing a chatbot that answers questions about {owner_name}'s professional background.

Score the RESPONSE on each criterion from 1 (poor) to 10 (excellent):
- correctness: is every claim supported by the DOCUMENTS? Penalize invented facts.
- comprehensiveness: does it address every part of the QUESTION that the documents can answer?
- coherence: is it clear, well-structured and easy to follow?
- conciseness: is it direct, without padding or repetition?
- overall: general quality considering all of the above.

DOCUMENTS:
{documents}

QUESTION: {question}

RESPONSE: {response}

Reply with a JSON object only:
{{"correctness": n, "comprehensiveness": n, "coherence": n, "conciseness": n, "overall": n,
  "feedback": "short explanation", "strengths": ["..."], "improvements": ["..."]}}"""


class OutputEvaluator:
    """Scores generated responses and flags common quality issues."""

    # Refusal phrases to detect when the LLM declines to answer
    REFUSAL_PHRASES = [
        "i don't have",
        "i do not have",
        "not mentioned",
        "cannot find",
        "don't know",
        "no information",
        "i cannot",
        "i can't",
        "unable to find",
        "not available",
        "doesn't mention"
    ]

    # Indicators that the model is giving a partial answer rather than a total refusal
    PARTIAL_ANSWER_INDICATORS = [
        "but",
        "however",
        "although",
        "does mention",
        "instead",
        "alternatively"
    ]

    # Capitalized words that are not claims about the owner
    STOP_WORDS = {
        "the", "this", "that", "these", "those", "it", "they", "we", "you",
        "a", "an", "and", "or", "but", "for", "he", "his", "she", "her", "i"
    }

    def __init__(self, llm_client: LLMClient, config: ChatConfig):
        """
        Args:
            llm_client: Client used for the judge call
            config: Chat settings (judge model, owner name)
        """
        self.llm_client = llm_client
        self.config = config

    def evaluate(
        self,
        question: str,
        response: str,
        documents: Sequence[ScoredDocument]
    ) -> EvaluationResult:
        """
        Evaluate a response against the documents used to produce it.

        Args:
            question: The user message
            response: Generated assistant message
            documents: Retrieved documents, best match first

        Returns:
            EvaluationResult with clamped scores, feedback and flags

        Raises:
            EvaluationFailedError: If the judge call fails or returns unusable output
        """
        flags = self.heuristic_flags(response, documents)
        verdict = self._judge(question, response, documents)

        scores = {name: self._clamp(verdict.get(name)) for name in SCORE_NAMES}
        if "overall" in verdict:
            overall = self._clamp(verdict.get("overall"))
        else:
            overall = round(sum(scores.values()) / len(scores), 2)

        return EvaluationResult(
            scores=scores,
            overall_score=overall,
            feedback=str(verdict.get("feedback") or "No feedback provided"),
            strengths=self._string_list(verdict.get("strengths")),
            improvements=self._string_list(verdict.get("improvements")),
            flags=flags
        )

    def heuristic_flags(self, response: str, documents: Sequence[ScoredDocument]) -> List[str]:
        """
        Deterministic checks that need no model call.

        Returns:
            List of flag strings (empty if no issues)
        """
        flags = []
        if self._is_no_context(response, len(documents)):
            flags.append("no_context")
        if self._is_refusal(response):
            flags.append("refusal")
        if self._has_unverified_mentions(response, documents):
            flags.append("unverified_mention")
        return flags

    def _judge(
        self,
        question: str,
        response: str,
        documents: Sequence[ScoredDocument]
    ) -> Dict[str, Any]:
        if documents:
            doc_text = "\n\n".join(
                f"[{d.document.document_id}] {d.document.text[:DOCUMENT_EXCERPT_CHARS]}"
                for d in documents
            )
        else:
            doc_text = "(none were retrieved)"

        prompt = JUDGE_PROMPT.format(
            owner_name=self.config.owner_name,
            documents=doc_text,
            question=question,
            response=response
        )

        try:
            llm_response = self.llm_client.generate(
                prompt,
                model=self.config.evaluator_model,
                max_tokens=600,
                temperature=0.1,
                json_mode=True
            )
        except LLMClientError as e:
            raise EvaluationFailedError(
                f"Judge call failed: {e.error.message}",
                details={"llm_error": e.error.code}
            ) from e

        try:
            verdict = json.loads(llm_response.text)
        except json.JSONDecodeError as e:
            raise EvaluationFailedError(
                "Judge returned invalid JSON",
                details={"raw": llm_response.text[:200]}
            ) from e

        if not isinstance(verdict, dict):
            raise EvaluationFailedError("Judge returned a non-object JSON value")
        return verdict

    @staticmethod
    def _clamp(value: Any) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            return DEFAULT_SCORE
        return max(MIN_SCORE, min(MAX_SCORE, score))

    @staticmethod
    def _string_list(value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        return [str(item) for item in value if item]

    def _is_no_context(self, response: str, documents_retrieved: int) -> bool:
        """Answered with zero documents and did not decline: likely hallucinated."""
        if documents_retrieved > 0:
            return False
        return not self._is_refusal(response)

    def _is_refusal(self, response: str) -> bool:
        """
        Detect when the LLM declines the whole question.

        A refusal phrase followed by a contrast word in a longer answer is a
        partial answer, not a refusal.
        """
        response_lower = response.lower()

        has_refusal = any(
            re.search(rf'\b{re.escape(phrase)}\b', response_lower)
            for phrase in self.REFUSAL_PHRASES
        )
        if not has_refusal:
            return False

        has_contrast = any(
            re.search(rf'\b{re.escape(indicator)}\b', response_lower)
            for indicator in self.PARTIAL_ANSWER_INDICATORS
        )
        if has_contrast and len(response.split()) > 12:
            return False

        return True

    def _has_unverified_mentions(
        self,
        response: str,
        documents: Sequence[ScoredDocument]
    ) -> bool:
        """Detect proper nouns (employers, schools, tools) absent from every document."""
        response_nouns = self._extract_proper_nouns(response)
        if not response_nouns:
            return False

        documents_text = " ".join(d.document.text for d in documents)
        documents_nouns = self._extract_proper_nouns(documents_text)
        # Names of the owner and assistant are always allowed
        allowed = {
            part.lower()
            for part in f"{self.config.owner_name} {self.config.assistant_name}".split()
        }

        unverified = {
            noun for noun in response_nouns - documents_nouns - allowed
            if len(noun) > 2 and noun not in self.STOP_WORDS
        }
        if unverified:
            logger.debug(f"Unverified mentions: {sorted(unverified)}")
        return bool(unverified)

    def _extract_proper_nouns(self, text: str) -> Set[str]:
        """
        Extract capitalized terms, lowercased.

        Words at the start of a sentence or Markdown list item only count when
        they are all-caps or camelCase (e.g. "AWS", "PyTorch").
        """
        proper_nouns = set()
        words = text.split()

        for i, word in enumerate(words):
            word = word.replace("'s", "").replace("’s", "")
            clean_word = re.sub(r'[^\w-]', '', word)
            if not clean_word or not clean_word[0].isupper():
                continue

            is_sentence_start = i == 0
            if i > 0:
                prev_word = words[i - 1].strip()
                if (prev_word.endswith(('.', '!', '?', ':')) or
                        re.match(r'^(\d+[.)]|[-*+>])$', prev_word)):
                    is_sentence_start = True

            if not is_sentence_start:
                proper_nouns.add(clean_word.lower())
            elif clean_word.isupper() or any(c.isupper() for c in clean_word[1:]):
                proper_nouns.add(clean_word.lower())

        return proper_nouns
