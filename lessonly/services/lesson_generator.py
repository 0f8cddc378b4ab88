import json
import logging
from enum import Enum
from functools import lru_cache
from typing import Any, List, Optional

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from lessonly.utils.ai_client import AIClientError, call_ai_model, extract_json_from_text


# -------------------------
# Configuration Management
# -------------------------
class AIConfig(BaseSettings):
    """AI Configuration with environment variable support"""

    model_config = SettingsConfigDict(env_prefix="AI_", case_sensitive=False, env_file=".env", extra="ignore")

    provider: str = "google-gemini"
    api_url: str = "https://generativelanguage.googleapis.com/v1/models/gemini-2.5-flash:generateContent"
    api_key: str = ""
    model: str = "gemini-2.5-flash"
    timeout: float = 120.0
    max_retries: int = 0
    temperature: float = 0.7
    max_output_tokens: int = 8192
    top_p: float = 0.95


@lru_cache
def get_ai_config() -> AIConfig:
    return AIConfig()


# -------------------------
# Logging
# -------------------------
logger = logging.getLogger("lesson_generator")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)


class LessonGenerationError(Exception):
    pass


# -------------------------
# Request / Response Models
# -------------------------
class PlanType(str, Enum):
    STANDARD = "standard"
    DETAILED = "detailed"
    STUDENT = "student"
    TUTOR = "tutor"


class GenerationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    plan_type: PlanType = Field(
        default=PlanType.STANDARD, validation_alias=AliasChoices("planType", "plan_type")
    )
    topic: str
    subject: str
    year_group: Optional[str] = None
    class_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("class", "class_name"))
    duration: Optional[str] = "60 minutes"
    objectives: Optional[str] = None
    outcomes: Optional[str] = None
    exam_board: Optional[str] = None

    # detailed / student
    specialist_subject_knowledge_required: Optional[str] = None
    knowledge_revisited: Optional[str] = None
    numeracy_opportunities: Optional[str] = None
    literacy_opportunities: Optional[str] = None
    subject_pedagogies: Optional[str] = None
    health_and_safety_considerations: Optional[str] = None

    # student / tutor
    student_name: Optional[str] = None
    learning_style: Optional[str] = None
    specific_needs: Optional[str] = None
    parent_goals: Optional[str] = None


class GenerationResponse(BaseModel):
    """What the model sent back. Every field is optional; unknown keys are kept."""

    model_config = ConfigDict(extra="allow")

    objectives: Any = None
    outcomes: Any = None
    homework: Any = None
    evaluation: Any = None
    notes: Any = None
    resources: Any = None
    lesson_structure: Any = None

    specialist_subject_knowledge_required: Any = None
    knowledge_revisited: Any = None
    numeracy_opportunities: Any = None
    literacy_opportunities: Any = None
    subject_pedagogies: Any = None
    health_and_safety_considerations: Any = None

    # tutor session extras
    materials_needed: Any = None
    key_teaching_points: Any = None
    common_misconceptions: Any = None
    assessment_methods: Any = None
    parent_communication: Any = None
    next_session_prep: Any = None

    def provided(self, name: str) -> bool:
        value = getattr(self, name, None)
        return value is not None and value != ""


# -------------------------
# Prompt Builder
# -------------------------
def _stage(stage, duration, teaching, learning, assessing, adapting) -> dict:
    return {
        "stage": stage,
        "duration": duration,
        "teaching": teaching,
        "learning": learning,
        "assessing": assessing,
        "adapting": adapting,
    }


STANDARD_STRUCTURE = {
    "objectives": "• Clear learning objectives (3-4 specific objectives)",
    "outcomes": "• Measurable learning outcomes (3-4 outcomes)",
    "homework": "• Relevant homework task that reinforces learning",
    "evaluation": "• How to assess if learning objectives were met\n• Questions to ask\n• Success criteria",
    "notes": "• Important reminders for the teacher\n• Differentiation strategies\n• Common misconceptions to address",
    "resources": [{"title": "Resource 1", "url": ""}, {"title": "Resource 2", "url": ""}],
    "lesson_structure": [
        _stage("Starter", "10 min",
               "What the teacher does/says to engage students and introduce the topic",
               "What students do to activate prior knowledge and prepare for learning",
               "How to check understanding through questioning or quick activities",
               "Support for students with SEN (scaffolding, visuals) and stretch for high achievers"),
        _stage("Main Activity 1", "20 min",
               "Teaching activities and explicit instruction",
               "Student activities and engagement with content",
               "Assessment methods and checks for understanding",
               "Differentiation strategies for different learners"),
        _stage("Main Activity 2", "20 min",
               "Teaching activities building on previous learning",
               "Student activities with increased independence",
               "Ongoing assessment and feedback",
               "Support and challenge strategies"),
        _stage("Plenary", "10 min",
               "Summary and consolidation activities",
               "Student reflection and demonstration of learning",
               "Check that learning objectives have been achieved",
               "Ensure all students can demonstrate their learning"),
    ],
}

DETAILED_STRUCTURE = {
    "objectives": "• Detailed learning objectives (3-4 specific objectives)",
    "outcomes": "• Measurable learning outcomes (3-4 outcomes)",
    "specialist_subject_knowledge_required": "• Key subject knowledge the teacher needs\n• Specialist concepts to understand",
    "knowledge_revisited": "• Prior learning being built upon\n• Links to previous lessons",
    "numeracy_opportunities": "• Ways students practice numerical skills\n• Data handling opportunities",
    "literacy_opportunities": "• Reading and writing activities\n• Subject-specific vocabulary development",
    "subject_pedagogies": "• Subject-specific teaching strategies\n• Research-based methods",
    "health_and_safety_considerations": "• Potential risks or hazards\n• Safety procedures to follow",
    "lesson_structure": STANDARD_STRUCTURE["lesson_structure"],
    "homework": "• Clear homework task that reinforces and extends learning\n• Expected time to complete\n• Success criteria",
    "evaluation": "• How to assess if learning objectives were met\n• What worked well and areas for improvement",
    "notes": "• Important reminders for the teacher\n• Common misconceptions to address\n• Timing considerations",
    "resources": [{"title": "Resource 1 name", "url": ""}, {"title": "Resource 2 name", "url": ""}],
}

STUDENT_STRUCTURE = {
    "lesson_title": "Engaging, student-friendly title that captures interest",
    "what_will_i_learn": "• I will learn... (3-4 clear learning goals written in first person)",
    "why_is_this_important": "Real-world explanation of why this topic matters to students",
    "what_i_need": ["Material/resource 1", "Notebook and pen"],
    "lesson_steps": [
        {
            "step_number": 1,
            "title": "Getting Started",
            "time": "5-10 min",
            "what_to_do": "Clear, step-by-step instructions written directly to the student",
            "tips": "Helpful hints and strategies for success",
            "check_understanding": "Self-assessment questions",
        }
    ],
    "practice_activities": [
        {
            "difficulty": "Easier - Building Confidence",
            "activity": "Activity that builds foundational skills",
            "success_criteria": "You'll know you've got it when...",
        }
    ],
    "homework": "Clear homework instructions with specific tasks and estimated time",
    "help_resources": [{"title": "Video tutorial name", "url": "", "description": "What you'll learn"}],
    "reflection": "Questions for you to think about after the lesson",
}

TUTOR_STRUCTURE = {
    "objectives": "• Specific, achievable goals for this tutoring session",
    "outcomes": "• What the student will be able to do by the end",
    "materials_needed": ["Whiteboard and markers", "Student workbook or paper"],
    "lesson_structure": [
        _stage("Starter", "5-10 min",
               "Review previous session, assess starting point, build rapport",
               "Answers questions, demonstrates prior knowledge, shares concerns",
               "What do you remember from last time? Can you explain...?",
               "If struggling: smaller steps. If excelling: add complexity"),
        _stage("Stage 1", "15-20 min",
               "Explain, model, demonstrate with clear examples",
               "Student takes notes, asks questions, tries examples with support",
               "Check understanding every 3-5 minutes with targeted questions",
               "If struggling: more worked examples. If excelling: reduce scaffolding"),
        _stage("Plenary", "5 min",
               "Summarize learning, celebrate progress, set homework",
               "Reflect on what they learned, ask final questions",
               "Can the student explain key concepts back to you?",
               "Identify specific areas to focus on next time"),
    ],
    "key_teaching_points": ["• Most important concept to emphasize"],
    "common_misconceptions": ["• Misconception students often have about this topic"],
    "assessment_methods": ["• Ask student to explain concepts in their own words"],
    "homework": "Optional practice task that reinforces today's learning",
    "parent_communication": "What to tell parents about today's session",
    "next_session_prep": "What to prepare for next time",
    "notes": "• Session observations: engagement level, confidence, effort",
}

STRUCTURES = {
    PlanType.STANDARD: STANDARD_STRUCTURE,
    PlanType.DETAILED: DETAILED_STRUCTURE,
    PlanType.STUDENT: STUDENT_STRUCTURE,
    PlanType.TUTOR: TUTOR_STRUCTURE,
}


def _lines(*pairs) -> List[str]:
    return [f"- {label}: {value}" for label, value in pairs if value]


def build_prompt(req: GenerationRequest) -> str:
    lines = [
        f"You are an expert UK teacher. Create a {req.plan_type.value} lesson plan with the following specifications:",
        "",
        "**Lesson Details:**",
        f"- Subject: {req.subject}",
        *_lines(("Year Group", req.year_group)),
        f"- Topic: {req.topic}",
        *_lines(("Class", req.class_name)),
        f"- Duration: {req.duration or '60 minutes'}",
        *_lines(
            ("Exam Board", req.exam_board),
            ("Teacher's Objectives", req.objectives),
            ("Desired Outcomes", req.outcomes),
        ),
    ]

    if req.plan_type is PlanType.DETAILED:
        lines += _lines(
            ("Specialist Knowledge", req.specialist_subject_knowledge_required),
            ("Knowledge Revisited", req.knowledge_revisited),
            ("Numeracy Focus", req.numeracy_opportunities),
            ("Literacy Focus", req.literacy_opportunities),
            ("Pedagogical Approaches", req.subject_pedagogies),
            ("Health & Safety", req.health_and_safety_considerations),
        )
        lines += ["", "This is a DETAILED lesson plan with comprehensive pedagogical information for each section."]
    elif req.plan_type is PlanType.STUDENT:
        lines += _lines(
            ("Student Name", req.student_name),
            ("Learning Style", req.learning_style),
            ("Specific Needs", req.specific_needs),
        )
        lines += [
            "",
            "This is a STUDENT-FOCUSED lesson plan. Make it engaging, written from the student's "
            "perspective, easy to follow independently, and include self-assessment opportunities.",
        ]
    elif req.plan_type is PlanType.TUTOR:
        lines += _lines(
            ("Student Name", req.student_name),
            ("Learning Style", req.learning_style),
            ("Specific Needs/Goals", req.specific_needs),
            ("Parent Goals", req.parent_goals),
        )
        lines += [
            "",
            "This is a TUTORING SESSION plan (1-on-1 or small group). Focus on personalized instruction, "
            "frequent checks for understanding, adaptive pacing and addressing specific knowledge gaps.",
        ]

    age = f"- Make it age-appropriate for {req.year_group}" if req.year_group else "- Make it age-appropriate"
    lines += [
        "",
        "Please provide a comprehensive lesson plan in JSON format:",
        "",
        json.dumps(STRUCTURES[req.plan_type], indent=2, ensure_ascii=False),
        "",
        "Important guidelines:",
        age,
        "- The first stage of lesson_structure must be named \"Starter\" and the last \"Plenary\"",
        "- Include specific strategies for adapting to students with SEN (Special Educational Needs)",
        "- Provide stretch and challenge for high achievers",
        "- Include formative assessment opportunities throughout",
        "- Use UK curriculum terminology and standards",
        "- Return ONLY valid JSON, no markdown formatting or code blocks",
    ]
    return "\n".join(lines)


# -------------------------
# Generator
# -------------------------
class LessonGenerator:
    def __init__(self, config: Optional[AIConfig] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.config = config or get_ai_config()
        self.http_client = http_client

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        prompt = build_prompt(request)
        logger.info(f"Generating {request.plan_type.value} plan for {request.subject} / {request.topic}")

        try:
            raw_output = await call_ai_model(
                prompt,
                provider=self.config.provider,
                api_url=self.config.api_url,
                api_key=self.config.api_key,
                model=self.config.model,
                generation_config={
                    "temperature": self.config.temperature,
                    "maxOutputTokens": self.config.max_output_tokens,
                    "topP": self.config.top_p,
                },
                timeout=self.config.timeout,
                max_retries=self.config.max_retries,
                http_client=self.http_client,
            )
        except AIClientError as e:
            logger.error(f"AI provider call failed: {e}")
            raise LessonGenerationError(str(e)) from e

        parsed = extract_json_from_text(raw_output)
        if not isinstance(parsed, dict):
            logger.error(f"JSON parse error. Response was: {raw_output[:1000]}")
            raise LessonGenerationError("AI returned invalid JSON. Please try again.")

        return GenerationResponse.model_validate(parsed)


def get_lesson_generator() -> LessonGenerator:
    return LessonGenerator()


# -------------------------
# Example CLI quick test (not executed on import)
# -------------------------
if __name__ == "__main__":
    import argparse
    import asyncio

    parser = argparse.ArgumentParser()
    parser.add_argument("--topic", required=True)
    parser.add_argument("--subject", required=True)
    parser.add_argument("--year_group", required=False)
    parser.add_argument("--plan_type", default="standard", choices=[p.value for p in PlanType])
    parser.add_argument("--prompt-only", action="store_true")
    args = parser.parse_args()

    req = GenerationRequest(
        plan_type=args.plan_type, topic=args.topic, subject=args.subject, year_group=args.year_group
    )

    async def main():
        if args.prompt_only:
            print(build_prompt(req))
            return
        res = await LessonGenerator().generate(req)
        print(json.dumps(res.model_dump(exclude_none=True), indent=2, ensure_ascii=False))

    asyncio.run(main())
