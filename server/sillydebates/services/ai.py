"""Gemini-backed collaborators: topic generator, content moderator, winner
commentary and the history chatbot.

Without an API key every call returns a canned response so the service runs
locally. Calls are bounded by ``timeout``; any failure is raised as
:class:`DependencyFailure` and the caller decides whether it is fatal.
"""

import asyncio
import json
import logging
import random
import re
from dataclasses import dataclass

from google import genai

from sillydebates.errors import DependencyFailure

logger = logging.getLogger(__name__)


TOPIC_SYSTEM_PROMPT = """You are the debate topic generator for "Silly Debates", a lighthearted daily game.
Write ONE family-friendly question that anyone can answer in a few seconds with a single concrete thing
(a food, an animal, a movie, a chore...). There must be no objectively correct answer.
Good: "What's the best pizza topping?", "What animal would make the worst pet?", "What's the most useless kitchen gadget?"
Avoid open-ended, abstract or multi-step hypotheticals.
Reply with the question only."""

MODERATOR_SYSTEM_PROMPT = """You are the content moderator for "Silly Debates", a family-friendly debate game.
Reject entries with profanity, hate speech, personal attacks, spam, explicit or violent content,
or content unrelated to the topic. Approve creative and funny entries, even tangential ones.
Reply with JSON only: {"approved": true/false, "reason": "short explanation"}"""

COMMENTARY_SYSTEM_PROMPT = """You are the announcer writing winner commentary for "Silly Debates".
Write 2-3 enthusiastic, family-friendly sentences celebrating the winner and playing on the winning entry.
No quotes or formatting, just the text."""

CHAT_SYSTEM_PROMPT = """You are the friendly assistant of "Silly Debates", a daily game where players submit funny answers to silly questions.
Answer questions about past topics, winners, entries and statistics using only the debate history you are given.
If the history does not contain the answer, say so. Keep answers short and light."""

MOCK_TOPICS = [
    "What's the best excuse for eating the last slice of pizza?",
    "Is cereal a soup?",
    "What's the worst superpower to have in everyday life?",
    "If animals could talk, which would be the rudest?",
    "What's the most overrated kitchen appliance?",
]


@dataclass
class ModerationResult:
    approved: bool
    reason: str


async def generate_text_content(
    client: genai.Client,
    contents: list,
    system_instructions: str,
    model_name: str,
    max_output_tokens: int = 100,
    temperature: float = 0.7,
) -> str:
    response = await client.aio.models.generate_content(
        model=model_name,
        contents=contents,
        config=genai.types.GenerateContentConfig(
            max_output_tokens=max_output_tokens,
            system_instruction=system_instructions,
            temperature=temperature,
        ),
    )
    return response.text or ""


def to_contents(history: list[dict], message: str) -> list:
    """Convert ``[{"role": "user"|"assistant", "content": ...}]`` chat history
    plus the new message into Gemini ``Content`` objects."""
    contents = []
    for item in history:
        role = "model" if item.get("role") == "assistant" else "user"
        contents.append(
            genai.types.Content(role=role, parts=[genai.types.Part(text=item["content"])])
        )
    contents.append(genai.types.Content(role="user", parts=[genai.types.Part(text=message)]))
    return contents


class AIService:
    def __init__(self, api_key: str, model_name: str, timeout: float = 20.0):
        self.model_name = model_name
        self.timeout = timeout
        self.client = genai.Client(api_key=api_key) if api_key else None
        if self.client is None:
            logger.warning("GEMINI_API_KEY not configured, AI features use mock responses.")

    async def _generate(
        self,
        purpose: str,
        contents: list,
        system_instructions: str,
        max_output_tokens: int,
        temperature: float,
    ) -> str:
        if self.client is None:
            return self._mock_response(purpose)
        try:
            return await asyncio.wait_for(
                generate_text_content(
                    self.client,
                    contents,
                    system_instructions=system_instructions,
                    model_name=self.model_name,
                    max_output_tokens=max_output_tokens,
                    temperature=temperature,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise DependencyFailure(f"AI {purpose} timed out after {self.timeout}s")
        except Exception as e:
            raise DependencyFailure(f"AI {purpose} failed: {type(e).__name__} - {e}")

    def _mock_response(self, purpose: str) -> str:
        if purpose == "topic":
            return random.choice(MOCK_TOPICS)
        if purpose == "moderation":
            return json.dumps({"approved": True, "reason": "Content meets community guidelines"})
        if purpose == "commentary":
            return (
                "What a fantastic entry! It captured the spirit of the debate "
                "and won the hearts (and votes) of the community!"
            )
        return "I can answer questions about past debates once the AI service is configured."

    async def generate_topic(self, previous_topics: list[str]) -> str:
        if previous_topics:
            avoid = "\n".join(f"- {topic}" for topic in previous_topics)
            prompt = f"Generate a new debate topic. Do not reuse any of these topics:\n{avoid}"
        else:
            prompt = "Generate a new debate topic."
        topic = await self._generate(
            "topic",
            [prompt],
            TOPIC_SYSTEM_PROMPT,
            max_output_tokens=100,
            temperature=0.9,
        )
        topic = topic.strip().strip("\"'").strip()
        if not topic:
            raise DependencyFailure("AI topic generator returned an empty topic")
        return topic

    async def moderate(self, text: str, topic: str) -> ModerationResult:
        """Fail-open: any error or unparseable answer approves the entry."""
        prompt = (
            f'Debate topic: "{topic}"\n\nUser\'s entry: "{text}"\n\n'
            "Should this entry be approved?"
        )
        try:
            response = await self._generate(
                "moderation",
                [prompt],
                MODERATOR_SYSTEM_PROMPT,
                max_output_tokens=150,
                temperature=0.3,
            )
        except DependencyFailure as e:
            logger.error(f"Moderation failed, allowing entry: {e.message}")
            return ModerationResult(approved=True, reason="Moderation check failed, entry allowed")

        match = re.search(r"\{.*\}", response, re.DOTALL)
        if match:
            try:
                result = json.loads(match.group(0))
                return ModerationResult(
                    approved=bool(result.get("approved")),
                    reason=str(result.get("reason") or ""),
                )
            except (ValueError, AttributeError):
                pass
        logger.warning("Could not parse moderation response, defaulting to approved")
        return ModerationResult(approved=True, reason="Unable to parse moderation response")

    async def generate_commentary(
        self, topic: str, winning_text: str, winner_name: str, vote_count: int
    ) -> str:
        prompt = (
            f'Debate topic: "{topic}"\n'
            f'Winning entry: "{winning_text}"\n'
            f"Winner's name: {winner_name}\n"
            f"Vote count: {vote_count}\n\n"
            "Write the commentary announcing this winner."
        )
        commentary = await self._generate(
            "commentary",
            [prompt],
            COMMENTARY_SYSTEM_PROMPT,
            max_output_tokens=200,
            temperature=0.8,
        )
        return commentary.strip()

    async def chat(self, message: str, context: str, history: list[dict] = None) -> str:
        system = f"{CHAT_SYSTEM_PROMPT}\n\nDebate history:\n\n{context}"
        answer = await self._generate(
            "chat",
            to_contents(history or [], message),
            system,
            max_output_tokens=500,
            temperature=0.7,
        )
        return answer.strip()
