"""
Interview prompt templates and deterministic fallbacks.

This module contains all the prompt templates used by the interview AI engine,
keeping them separate from the business logic for easier maintenance and editing.
"""

from typing import Dict, Any, List


class InterviewPrompts:
    """Collection of all interview-related prompts."""

    @staticmethod
    def question_generation_system(category: str, count: int = 5) -> str:
        """System prompt for generating the question set."""
        return f"""
You are an expert technical interviewer. Generate exactly {count} technical interview questions for a {category} developer position.

The questions should:
- Progress from easy to hard
- Cover fundamental concepts, practical scenarios, and problem-solving
- Be clear and concise
- Test real-world knowledge

Return ONLY a JSON array of {count} question strings. No other text.
Example format: ["Question 1?", "Question 2?", "Question 3?", "Question 4?", "Question 5?"]
        """.strip()

    @staticmethod
    def question_generation_user(category: str, count: int = 5) -> str:
        return f"Generate {count} {category} interview questions."

    @staticmethod
    def analysis_system() -> str:
        """System prompt for scoring a finished interview."""
        return """
You are an expert technical interviewer analyzing interview responses. Evaluate the candidate's performance and provide constructive feedback.

Be encouraging but honest. Consider:
- Technical accuracy
- Communication clarity
- Problem-solving approach
- Depth of knowledge

Provide:
1. An overall score from 0-100
2. A detailed analysis (2-3 paragraphs)
3. Key strengths
4. Areas for improvement
5. Hiring recommendation

Return as JSON with this exact format:
{
  "score": number,
  "analysis": "detailed analysis text",
  "strengths": ["strength1", "strength2"],
  "improvements": ["area1", "area2"],
  "recommendation": "hire/consider/not_recommended"
}
        """.strip()

    @staticmethod
    def analysis_user(candidate_name: str, category: str, responses: List[Dict[str, Any]]) -> str:
        qa_blocks = "\n\n".join(
            f"Q{i + 1}: {r.get('question', '')}\nA{i + 1}: {r.get('answer') or '(No response provided)'}"
            for i, r in enumerate(responses)
        )
        return f"""
Candidate: {candidate_name}
Position: {category} Developer

Interview Q&A:
{qa_blocks}

Analyze this interview and provide feedback.
        """.strip()


class FallbackContent:
    """Deterministic content used when the AI backend cannot be relied on."""

    @staticmethod
    def questions(category: str) -> List[str]:
        return [
            f"What are the core concepts of {category}?",
            f"Explain a challenging {category} problem you've solved.",
            f"How do you handle debugging in {category}?",
            f"What best practices do you follow in {category}?",
            f"Describe a {category} project you're proud of.",
        ]

    @staticmethod
    def analysis() -> Dict[str, Any]:
        """Neutral result when the model's answer cannot be parsed."""
        return {
            "score": 70,
            "analysis": "Unable to generate detailed analysis. The candidate showed general knowledge of the subject.",
            "strengths": ["Participated in the interview"],
            "improvements": ["Could provide more detailed responses"],
            "recommendation": "consider",
        }

    @staticmethod
    def analysis_unavailable() -> Dict[str, Any]:
        """Neutral result when the scoring backend could not be reached at all."""
        return {
            "score": 70,
            "analysis": "We encountered an issue analyzing your responses. Please try again.",
            "strengths": ["Completed the interview"],
            "improvements": ["Unable to provide detailed feedback"],
            "recommendation": "consider",
        }


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block (```json ... ```) if present."""
    clean = text.strip()
    if clean.startswith("```json"):
        clean = clean[7:]
    if clean.startswith("```"):
        clean = clean[3:]
    if clean.endswith("```"):
        clean = clean[:-3]
    return clean.strip()
