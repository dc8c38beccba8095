"""
Candidate term extraction.

Asks an OpenAI chat model for the job titles, industries, locations or
business categories implied by a free-text audience description. The model
is forced to answer through a single tool call whose arguments hold the
list of terms.

Any failure (no API key, transport error, timeout, malformed tool call)
yields an empty list: extraction never fails a request on its own.
"""

import json
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from .config import Settings
from .logging_config import get_logger
from .term_normalise import clean_candidates

logger = get_logger(__name__)

TOOL_NAME = "extract_terms"

ROLE_PROMPTS: Dict[str, str] = {
    "title": """You extract job titles from audience descriptions.
Generate realistic, formal job titles as they would appear in a people database.

GUIDELINES:
1. Return at least 5 titles when possible, up to 10 for broad descriptions
2. Include close variations and related roles that match the intent
3. Prefer precise titles over generic descriptions
4. Use proper case ("Sales Manager", not "sales manager")

EXAMPLE:
- Input: "HR managers in Australia"
  Output: ["HR Manager", "Human Resources Manager", "HR Business Partner", "People and Culture Manager", "Head of Human Resources"]""",

    "industry": """You extract industry keywords from audience descriptions.
Return the industries a matching person or company would be classified under,
using standard industry names as found in business databases
(e.g. "Information Technology and Services", "Financial Services", "Hospital & Health Care").
Return between 1 and 8 industries. Return an empty list if no industry is implied.""",

    "location": """You extract locations from audience descriptions.
Return each place mentioned as it would be written in an address database:
cities as "City, State" when the state is known, otherwise the bare city,
state or metro name. Do not add places that are not mentioned.
Return an empty list if no location is mentioned.""",

    "category": """You extract local business categories from audience descriptions.
Return short category names as they would appear in a business listing
(e.g. "Car Wash", "Dentist", "Italian Restaurant"), including close variants.
Return between 1 and 10 categories.""",
}


def build_tool(role: str) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": TOOL_NAME,
            "description": f"Return the {role} terms implied by the description",
            "parameters": {
                "type": "object",
                "properties": {
                    "terms": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": f"List of {role} terms",
                    }
                },
                "required": ["terms"],
            },
        },
    }


def parse_tool_arguments(arguments: Optional[str]) -> List[str]:
    """Pull the term list out of a tool call's JSON arguments."""
    if not arguments:
        return []

    try:
        payload = json.loads(arguments)
    except json.JSONDecodeError:
        logger.warning(f"Extraction returned malformed arguments: {arguments[:200]!r}")
        return []

    if not isinstance(payload, dict) or not isinstance(payload.get("terms"), list):
        logger.warning("Extraction arguments have no 'terms' list")
        return []

    return clean_candidates(payload["terms"])


class CandidateExtractor:
    def __init__(self, client: Optional[AsyncOpenAI], model: str, temperature: float = 0.7):
        self.client = client
        self.model = model
        self.temperature = temperature

    @classmethod
    def from_settings(cls, settings: Settings) -> "CandidateExtractor":
        if not settings.openai_api_key:
            logger.warning("OPENAI_API_KEY not set; candidate extraction is disabled")
            return cls(None, settings.openai_model)

        client = AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.llm_timeout)
        return cls(client, settings.openai_model)

    async def extract(self, description: str, role: str) -> List[str]:
        if self.client is None or not description.strip():
            return []

        if role not in ROLE_PROMPTS:
            raise ValueError(f"Unknown role: {role}")

        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": ROLE_PROMPTS[role]},
                    {"role": "user", "content": description},
                ],
                temperature=self.temperature,
                tools=[build_tool(role)],
                tool_choice={"type": "function", "function": {"name": TOOL_NAME}},
            )
        except OpenAIError as e:
            logger.warning(f"Extraction of {role} terms failed: {e}")
            return []

        if not completion.choices:
            logger.warning(f"Extraction of {role} terms returned no choices")
            return []

        tool_calls = completion.choices[0].message.tool_calls or []
        for call in tool_calls:
            if call.function.name == TOOL_NAME:
                terms = parse_tool_arguments(call.function.arguments)
                logger.info(f"Extracted {len(terms)} {role} terms")
                return terms

        logger.warning(f"Extraction of {role} terms did not call {TOOL_NAME}")
        return []

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
