import logging

from persona_gateway.core.errors import MissingPromptError
from persona_gateway.store.base import Persona, PersonaStore

logger = logging.getLogger("pgw.prompts")

SECTION_BREAK = "\n\n---\n\n"


class PromptAssembler:
    """Prepends the persona's hidden system instruction to a conversation.

    The store handed in here must be the privileged one; the hidden prompt
    is never readable with the caller's own credential.
    """

    def __init__(self, store: PersonaStore):
        self._store = store

    async def assemble(
        self,
        persona: Persona,
        messages: list[dict[str, str]],
        skill_id: str | None = None,
    ) -> list[dict[str, str]]:
        hidden_prompt = await self._store.get_hidden_prompt(persona.id)
        if not hidden_prompt:
            logger.error("hidden_prompt_missing", extra={"persona_id": persona.id})
            raise MissingPromptError(f"No system prompt configured for persona {persona.id}")

        skill_prompt = None
        if skill_id:
            skill_prompt = await self._store.get_skill_prompt(persona.id, skill_id)
            if skill_prompt is None:
                logger.info(
                    "skill_prompt_not_found",
                    extra={"persona_id": persona.id},
                )

        system_text = build_system_instruction(persona, hidden_prompt, skill_prompt)
        return [{"role": "system", "content": system_text}, *messages]


def build_system_instruction(
    persona: Persona, hidden_prompt: str, skill_prompt: str | None = None
) -> str:
    text = f"You are {persona.name}, {persona.subtitle or 'a helpful AI assistant'}."
    text += f"{SECTION_BREAK}YOUR PERSONALITY AND BEHAVIOR:\n\n{hidden_prompt}"
    if skill_prompt:
        text += f"{SECTION_BREAK}CURRENT ACTIVE SKILL INSTRUCTIONS:\n\n{skill_prompt}"
        text += (
            "\n\nIMPORTANT: The user has selected the skill above. If the user's message "
            "is just the name of the skill and the skill needs input that has not been "
            "provided yet, ask the user for that input instead of answering generically."
        )
    return text
