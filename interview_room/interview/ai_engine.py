"""
Local implementation of the interview-ai backend on top of Vertex AI.

Does what the hosted function does: builds the prompts, calls the model,
strips markdown fences from the reply and falls back to deterministic
content when the reply is not valid JSON.
"""
import json
import logging
from typing import Dict, Any, List

from ..config import QUESTION_COUNT
from .capabilities import InterviewAIClient
from .prompts import InterviewPrompts, FallbackContent, strip_code_fences

logger = logging.getLogger("ai_engine")


class InterviewAIEngine(InterviewAIClient):
    """Dispatches ``{"action": ...}`` requests to the language model."""

    def __init__(self, llm_client, question_count: int = QUESTION_COUNT):
        self.llm_client = llm_client
        self.question_count = question_count
        self.prompts = InterviewPrompts()

    def invoke(self, body: Dict[str, Any]) -> Dict[str, Any]:
        action = body.get("action")
        logger.info(f"Processing action: {action}")

        if action == "generate_questions":
            return {"result": self._generate_questions(body.get("category", ""))}
        if action == "analyze_responses":
            return {"result": self._analyze_responses(
                body.get("category", ""),
                body.get("candidateName", ""),
                body.get("responses") or [],
            )}

        raise ValueError(f"Invalid action: {action}")

    def _generate_questions(self, category: str) -> List[str]:
        system = self.prompts.question_generation_system(category, self.question_count)
        user = self.prompts.question_generation_user(category, self.question_count)
        content = self.llm_client.generate_content(user, system_instruction=system)
        logger.debug(f"AI response: {content}")

        try:
            questions = json.loads(strip_code_fences(content))
        except json.JSONDecodeError as e:
            logger.error("Failed to parse questions: %s", e)
            return FallbackContent.questions(category)

        if not isinstance(questions, list):
            logger.error("Question reply is not a JSON array")
            return FallbackContent.questions(category)
        return questions

    def _analyze_responses(self, category: str, candidate_name: str,
                           responses: List[Dict[str, Any]]) -> Dict[str, Any]:
        system = self.prompts.analysis_system()
        user = self.prompts.analysis_user(candidate_name, category, responses)
        content = self.llm_client.generate_content(user, system_instruction=system)
        logger.debug(f"AI response: {content}")

        try:
            analysis = json.loads(strip_code_fences(content))
        except json.JSONDecodeError as e:
            logger.error("Failed to parse analysis: %s", e)
            return FallbackContent.analysis()

        if not isinstance(analysis, dict):
            logger.error("Analysis reply is not a JSON object")
            return FallbackContent.analysis()
        return analysis
