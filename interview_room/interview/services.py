"""
Service classes for the interview system.
"""
import asyncio
import logging
from typing import Dict, Any, List, Optional, Sequence, Tuple

from ..config import QUESTION_COUNT
from .capabilities import InterviewAIClient
from .errors import UpstreamGenerationFailure, UpstreamScoringFailure
from .models import QAPair
from .prompts import FallbackContent
from .schemas import AnalysisResult, parse_question_list, parse_analysis

logger = logging.getLogger("services")


class QuestionService:
    """Fetches the question set for a category from the interview AI backend."""

    def __init__(self,
                 client: InterviewAIClient,
                 question_count: int = QUESTION_COUNT,
                 fallback_on_error: bool = True):
        self.client = client
        self.question_count = question_count
        self.fallback_on_error = fallback_on_error

    async def generate(self, category: str) -> Tuple[List[str], bool]:
        """
        Request questions for ``category``.

        Returns:
            Tuple of (questions, used_fallback)

        Raises:
            UpstreamGenerationFailure: backend failed and fallback is disabled
        """
        body = {"action": "generate_questions", "category": category}
        try:
            response = await asyncio.to_thread(self.client.invoke, body)
            questions = parse_question_list(response.get("result"), self.question_count)
            logger.info(f"Loaded {len(questions)} {category} question(s)")
            return questions, False
        except UpstreamGenerationFailure as e:
            if not self.fallback_on_error:
                raise
            logger.error("Question generation failed: %s", e)
        except Exception as e:
            if not self.fallback_on_error:
                raise UpstreamGenerationFailure(str(e)) from e
            logger.error("Question generation failed: %s", e)

        logger.warning(f"Using template questions for {category}")
        return FallbackContent.questions(category)[:self.question_count], True


class ScoringService:
    """Submits a finished interview for analysis."""

    def __init__(self, client: InterviewAIClient):
        self.client = client
        self.last_error: Optional[Exception] = None

    async def analyze(self,
                      category: str,
                      candidate_name: str,
                      responses: Sequence[QAPair]) -> AnalysisResult:
        """
        Score the interview. Never raises: any failure yields the neutral
        result and is kept in ``last_error`` so the caller can notify the user.
        """
        body: Dict[str, Any] = {
            "action": "analyze_responses",
            "category": category,
            "candidateName": candidate_name,
            "responses": [r.to_dict() for r in responses],
        }
        self.last_error = None
        try:
            response = await asyncio.to_thread(self.client.invoke, body)
            result = parse_analysis(response.get("result"))
            logger.info(f"Interview scored {result.score} ({result.recommendation})")
            return result
        except Exception as e:
            logger.error("Error analyzing interview: %s", e)
            self.last_error = e if isinstance(e, UpstreamScoringFailure) else UpstreamScoringFailure(str(e))

        return AnalysisResult.model_validate(FallbackContent.analysis_unavailable())
