"""
AI optimisation service: job-match scoring, resume optimisation, career
insights and interview preparation, all backed by Gemini.

Failure policy differs per feature:

- analyze_job_match / calculate_application_score retry up to
  Config.AI_MAX_RETRIES times and then raise AIServiceError. They never
  return placeholder scores.
- optimize_resume_for_job retries the same way, then degrades to generic
  suggestions.
- generate_career_insights, generate_interview_questions and
  optimize_basic_summary make a single attempt and degrade to fixed content.

Usage:
    service = JobMatchService()
    analysis = await service.analyze_job_match(profile, application)
    score = await service.calculate_application_score(profile, application)
"""

import json
import logging
import math
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field
from tenacity import AsyncRetrying, before_sleep_log, stop_after_attempt, wait_incrementing

from src.analytics.models import CamelModel, Priority, Trend
from src.common.config import Config
from src.common.error_handling import AIServiceError, with_fallback
from src.common.json_utils import parse_llm_json

from .gemini_client import GeminiClient, get_gemini_client

logger = logging.getLogger(__name__)

APPLICATION_SCORE_WEIGHTS = {
    "skills_match": 0.35,
    "experience_match": 0.25,
    "location_match": 0.15,
    "salary_match": 0.10,
    "ats_compatibility": 0.15,
}

INTERVIEW_TYPES = ("behavioral", "technical", "case_study", "general")


# ===== Response models =====


class ResumeOptimizationSuggestion(CamelModel):
    section: Literal["experience", "skills", "summary", "education", "projects"]
    priority: Priority
    suggestion: str
    reasoning: str = ""
    keywords: List[str] = Field(default_factory=list)
    impact: Literal["increase_match", "improve_ats", "enhance_readability", "boost_ranking"]


class JobMatchAnalysis(CamelModel):
    """Scores are 0-100."""

    overall_match: float
    skills_match: float = 0
    experience_match: float = 0
    location_match: float = 0
    salary_match: float = 0
    missing_skills: List[str]
    strong_points: List[str]
    recommendations: List[str] = Field(default_factory=list)
    ats_compatibility: float = 0
    competitive_advantage: List[str] = Field(default_factory=list)


class CareerInsight(CamelModel):
    role: Optional[str] = None
    trend: Trend
    demand_level: Priority
    average_salary: float
    skills_in_demand: List[str] = Field(default_factory=list)
    career_progression: List[str] = Field(default_factory=list)
    industry_outlook: str = ""
    recommended_certifications: List[str] = Field(default_factory=list)


class SuggestedAnswer(CamelModel):
    question: str
    key_points: List[str] = Field(default_factory=list)
    sample_answer: str = ""


class InterviewQuestions(CamelModel):
    questions: List[str]
    suggested_answers: List[SuggestedAnswer] = Field(default_factory=list)


# ===== Fallback content =====

FALLBACK_OPTIMIZATION_SUGGESTIONS = [
    {
        "section": "summary",
        "priority": "high",
        "suggestion": "Add a professional summary that highlights your key qualifications",
        "reasoning": "A strong summary helps ATS systems and recruiters quickly understand your value",
        "keywords": ["professional", "experienced", "results-driven"],
        "impact": "improve_ats",
    },
    {
        "section": "skills",
        "priority": "high",
        "suggestion": "Include more technical keywords from the job description",
        "reasoning": "ATS systems scan for specific keywords to match candidates",
        "keywords": ["technical skills", "programming", "tools"],
        "impact": "increase_match",
    },
]

FALLBACK_INTERVIEW_QUESTIONS = {
    "behavioral": [
        "Tell me about yourself",
        "Describe a challenging situation you overcame",
        "How do you handle conflict in the workplace?",
        "Give an example of when you showed leadership",
        "Describe a time you failed and what you learned",
    ],
    "technical": [
        "Explain your experience with [relevant technology]",
        "How would you approach [technical challenge]?",
        "What are the pros and cons of [technical concept]?",
        "Describe your development process",
        "How do you stay updated with industry trends?",
    ],
    "general": [
        "Why are you interested in this position?",
        "What are your career goals?",
        "Why are you leaving your current job?",
        "What are your salary expectations?",
        "Do you have any questions for us?",
    ],
}

FALLBACK_SUGGESTED_ANSWER = {
    "question": "Tell me about yourself",
    "keyPoints": ["Professional background", "Key achievements", "Career goals"],
    "sampleAnswer": (
        "Use the STAR method to structure your response with specific examples "
        "and quantifiable results."
    ),
}


def fallback_optimization_suggestions(*_args, **_kwargs) -> List[ResumeOptimizationSuggestion]:
    return [ResumeOptimizationSuggestion.model_validate(item) for item in FALLBACK_OPTIMIZATION_SUGGESTIONS]


def fallback_career_insights(_service, profile: Dict[str, Any], *_args, **_kwargs) -> List[CareerInsight]:
    """One generic 'stable / medium demand' insight per preferred role."""
    return [
        CareerInsight(
            role=role,
            trend="stable",
            demand_level="medium",
            average_salary=80000,
            skills_in_demand=["communication", "problem-solving"],
            career_progression=["Senior level", "Management"],
            industry_outlook="Stable growth expected",
            recommended_certifications=["Industry-standard certifications"],
        )
        for role in (profile or {}).get("preferredRoles") or []
    ]


def fallback_interview_questions(_service, _application, interview_type: str = "general", **_kwargs) -> InterviewQuestions:
    questions = FALLBACK_INTERVIEW_QUESTIONS.get(interview_type, FALLBACK_INTERVIEW_QUESTIONS["general"])
    return InterviewQuestions(
        questions=list(questions),
        suggested_answers=[SuggestedAnswer.model_validate(FALLBACK_SUGGESTED_ANSWER)],
    )


def fallback_basic_summary(_service, data: Dict[str, Any], **_kwargs) -> Dict[str, str]:
    skills = ", ".join((data.get("skills") or [])[:3])
    return {
        "summary": (
            f"Hardworking and reliable {data.get('education', '')} graduate with strong skills in "
            f"{skills}. Eager to learn and contribute to a professional team."
        )
    }


# ===== Prompt payloads =====


def _dump(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, default=str)


def _job_blueprint(application: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "jobTitle": application.get("jobTitle"),
        "companyName": application.get("companyName"),
        "description": application.get("jobDescription"),
        "location": application.get("jobLocation"),
    }


def application_score(match: JobMatchAnalysis) -> int:
    """Weighted 0-100 score from the match dimensions, rounded half up."""
    weighted = sum(getattr(match, field) * weight for field, weight in APPLICATION_SCORE_WEIGHTS.items())
    return int(math.floor(weighted + 0.5))


class JobMatchService:
    """Gemini-backed resume and job-match features."""

    def __init__(
        self,
        client: Optional[GeminiClient] = None,
        max_retries: Optional[int] = None,
        retry_wait_seconds: Optional[float] = None,
    ):
        """
        Args:
            client: Gemini client (defaults to the shared one)
            max_retries: Attempts for retried features (default Config.AI_MAX_RETRIES)
            retry_wait_seconds: Wait before retry N is N times this
                (default Config.AI_RETRY_WAIT_SECONDS)
        """
        self._client = client
        self.max_retries = max_retries or Config.AI_MAX_RETRIES
        self.retry_wait_seconds = (
            Config.AI_RETRY_WAIT_SECONDS if retry_wait_seconds is None else retry_wait_seconds
        )

    @property
    def client(self) -> GeminiClient:
        if self._client is None:
            self._client = get_gemini_client()
        return self._client

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_incrementing(start=self.retry_wait_seconds, increment=self.retry_wait_seconds),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    # ===== Job match (no fallback) =====

    async def analyze_job_match(
        self,
        profile: Dict[str, Any],
        application: Dict[str, Any],
    ) -> JobMatchAnalysis:
        """
        Multi-dimensional match between a candidate profile and a job.

        Raises:
            AIServiceError: After Config.AI_MAX_RETRIES failed attempts
        """
        prompt = self._job_match_prompt(profile, application)

        try:
            async for attempt in self._retrying():
                with attempt:
                    number = attempt.retry_state.attempt_number
                    logger.info(f"Attempt {number}/{self.max_retries}: analyzing job match")
                    text = await self.client.generate_content(
                        prompt,
                        temperature=Config.ANALYTICAL_TEMPERATURE,
                        top_k=20,
                        top_p=0.6,
                        max_output_tokens=1024,
                    )
                    analysis = self._parse_job_match(text)
                    logger.info(f"Job match analysis succeeded on attempt {number}")
                    return analysis
        except Exception as e:
            logger.error(
                f"Job match analysis failed after {self.max_retries} attempts for "
                f"'{application.get('jobTitle')}' at '{application.get('companyName')}' "
                f"(description length {len(application.get('jobDescription') or '')}): {e}"
            )
            raise AIServiceError(
                f"AI job match analysis failed after {self.max_retries} attempts: {e}",
                attempts=self.max_retries,
            ) from e

    @staticmethod
    def _parse_job_match(text: str) -> JobMatchAnalysis:
        parsed = parse_llm_json(text)
        if not (
            isinstance(parsed.get("overallMatch"), (int, float))
            and not isinstance(parsed.get("overallMatch"), bool)
            and isinstance(parsed.get("missingSkills"), list)
            and isinstance(parsed.get("strongPoints"), list)
        ):
            raise ValueError("Invalid response structure")
        return JobMatchAnalysis.model_validate(parsed)

    async def calculate_application_score(
        self,
        profile: Dict[str, Any],
        application: Dict[str, Any],
    ) -> int:
        """
        Weighted 0-100 application score from the job-match dimensions.

        Raises:
            AIServiceError: Propagated from analyze_job_match
        """
        match = await self.analyze_job_match(profile, application)
        score = application_score(match)
        logger.info(
            f"Application score {score} (skills={match.skills_match}, "
            f"experience={match.experience_match}, location={match.location_match}, "
            f"salary={match.salary_match}, ats={match.ats_compatibility})"
        )
        return score

    # ===== Features with fallbacks =====

    @with_fallback("resume optimization", fallback_factory=fallback_optimization_suggestions)
    async def optimize_resume_for_job(
        self,
        profile: Dict[str, Any],
        job_description: str,
        resume_content: str,
    ) -> List[ResumeOptimizationSuggestion]:
        """Keyword and positioning suggestions for a resume against one job."""
        prompt = self._resume_prompt(profile, job_description, resume_content)

        async for attempt in self._retrying():
            with attempt:
                text = await self.client.generate_content(
                    prompt,
                    temperature=Config.ANALYTICAL_TEMPERATURE,
                    top_k=20,
                    top_p=0.6,
                    max_output_tokens=2048,
                )
                suggestions = parse_llm_json(text).get("suggestions")
                if not isinstance(suggestions, list):
                    raise ValueError("Invalid response structure - missing suggestions array")
                return [ResumeOptimizationSuggestion.model_validate(item) for item in suggestions]

    @with_fallback("career insights", fallback_factory=fallback_career_insights)
    async def generate_career_insights(
        self,
        profile: Dict[str, Any],
        market_data: Optional[Dict[str, Any]] = None,
    ) -> List[CareerInsight]:
        """Per-role market outlook for the user's preferred roles."""
        text = await self.client.generate_content(self._career_prompt(profile, market_data))
        insights = parse_llm_json(text).get("insights")
        if not isinstance(insights, list):
            raise ValueError("Invalid response structure - missing insights array")
        return [CareerInsight.model_validate(item) for item in insights]

    @with_fallback("interview questions", fallback_factory=fallback_interview_questions)
    async def generate_interview_questions(
        self,
        application: Dict[str, Any],
        interview_type: str = "general",
    ) -> InterviewQuestions:
        if interview_type not in INTERVIEW_TYPES:
            raise ValueError(f"Unknown interview type: {interview_type}")
        text = await self.client.generate_content(self._interview_prompt(application, interview_type))
        return InterviewQuestions.model_validate(parse_llm_json(text))

    @with_fallback("basic summary", fallback_factory=fallback_basic_summary)
    async def optimize_basic_summary(self, data: Dict[str, Any]) -> Dict[str, str]:
        """Short entry-level profile summary from skills, education and experience."""
        text = await self.client.generate_content(self._basic_summary_prompt(data))
        summary = parse_llm_json(text).get("summary")
        if not isinstance(summary, str) or not summary.strip():
            raise ValueError("Invalid response structure - missing summary")
        return {"summary": summary}

    # ===== Prompts =====

    @staticmethod
    def _job_match_prompt(profile: Dict[str, Any], application: Dict[str, Any]) -> str:
        candidate = {
            "headline": profile.get("headline"),
            "bio": profile.get("bio"),
            "tenure": profile.get("yearsOfExperience"),
            "technicalMastery": profile.get("technicalSkills"),
            "softSkills": profile.get("softSkills"),
            "aspirations": profile.get("preferredRoles"),
            "location": profile.get("currentLocation"),
        }
        return f"""
You are an executive search consultant. Audit how well this candidate fits the target job.

CANDIDATE:
{_dump(candidate)}

TARGET JOB:
{_dump(_job_blueprint(application))}

Return a match analysis as JSON. Scores must be realistic and evidence-based.

REQUIRED OUTPUT FORMAT (STRICT JSON):
{{
  "overallMatch": number (0-100),
  "skillsMatch": number (0-100),
  "experienceMatch": number (0-100),
  "locationMatch": number (0-100),
  "salaryMatch": number (0-100),
  "missingSkills": ["missing technical or soft skills"],
  "strongPoints": ["evidence-backed strengths"],
  "recommendations": ["advice to close the gap"],
  "atsCompatibility": number (0-100),
  "competitiveAdvantage": ["traits that set the candidate apart"]
}}

RULES:
- Plain text only inside JSON strings, no markdown.
- Be critical. Avoid inflated scores.
- Return ONLY the JSON object.
"""

    @staticmethod
    def _resume_prompt(profile: Dict[str, Any], job_description: str, resume_content: str) -> str:
        context = {
            "headline": profile.get("headline"),
            "bio": profile.get("bio"),
            "technicalStack": profile.get("technicalSkills"),
            "careerAspirations": profile.get("preferredRoles"),
        }
        return f"""
You are an ATS optimisation expert. Audit this resume against the target job.

CANDIDATE CONTEXT:
{_dump(context)}

TARGET JOB:
{job_description}

CURRENT RESUME:
{resume_content}

Identify keyword gaps, misalignments and achievements that should be quantified.

REQUIRED OUTPUT FORMAT (STRICT JSON):
{{
  "suggestions": [
    {{
      "section": "experience|skills|summary|education|projects",
      "priority": "high|medium|low",
      "suggestion": "specific actionable advice",
      "reasoning": "how the change improves ranking or ATS match",
      "keywords": ["keyword"],
      "impact": "increase_match|improve_ats|enhance_readability|boost_ranking"
    }}
  ]
}}

RULES:
- Plain text only inside JSON strings, no markdown.
- Suggestions must name concrete roles, skills or phrases.
- Return ONLY the JSON object.
"""

    @staticmethod
    def _career_prompt(profile: Dict[str, Any], market_data: Optional[Dict[str, Any]]) -> str:
        candidate = {
            "headline": profile.get("headline"),
            "tenure": profile.get("yearsOfExperience"),
            "technicalMastery": profile.get("technicalSkills"),
            "aspirations": profile.get("preferredRoles"),
            "industries": profile.get("preferredIndustries"),
            "location": profile.get("currentLocation"),
        }
        market = f"\nMARKET DATA:\n{_dump(market_data)}\n" if market_data else ""
        return f"""
You are a labour market economist. Produce career insights for each target role of this professional.

CANDIDATE:
{_dump(candidate)}
{market}
REQUIRED OUTPUT FORMAT (STRICT JSON):
{{
  "insights": [
    {{
      "role": "Software Engineer",
      "trend": "growing|stable|declining",
      "demandLevel": "high|medium|low",
      "averageSalary": number,
      "skillsInDemand": ["skill"],
      "careerProgression": ["next role"],
      "industryOutlook": "outlook for the next 24 months",
      "recommendedCertifications": ["certification"]
    }}
  ]
}}

RULES:
- Plain text only inside JSON strings, no markdown.
- Salaries must be realistic.
- Return ONLY the JSON object.
"""

    @staticmethod
    def _interview_prompt(application: Dict[str, Any], interview_type: str) -> str:
        job = {
            "jobTitle": application.get("jobTitle"),
            "companyName": application.get("companyName"),
            "description": application.get("jobDescription"),
            "context": application.get("companyIntelligence"),
        }
        return f"""
You are a principal hiring manager. Generate challenging {interview_type} interview questions for this role.

TARGET JOB:
{_dump(job)}

REQUIRED OUTPUT FORMAT (STRICT JSON):
{{
  "questions": ["8-12 situational or technical questions"],
  "suggestedAnswers": [
    {{
      "question": "question text",
      "keyPoints": ["signal to look for"],
      "sampleAnswer": "strong answer using the STAR method"
    }}
  ]
}}

RULES:
- Plain text only inside JSON strings, no markdown.
- Return ONLY the JSON object.
"""

    @staticmethod
    def _basic_summary_prompt(data: Dict[str, Any]) -> str:
        experience = data.get("experience")
        experience_text = (
            _dump({"experience": experience})
            if experience
            else "No formal work experience (focus on potential, character and willingness to learn)"
        )
        return f"""
You are a career consultant for entry-level resumes. Write a professional, humble profile summary
(max 3-4 sentences) for this candidate.

EDUCATION: {data.get('education', '')}
SKILLS: {', '.join(data.get('skills') or [])}
EXPERIENCE: {experience_text}

OUTPUT FORMAT (STRICT JSON):
{{
  "summary": "profile summary text"
}}
"""
