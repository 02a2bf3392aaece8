from app.agent.artifacts import EditedContent, EditingInput
from app.agent.base import BaseAgent
from app.agent.prompts.content import EDITOR_SYSTEM_PROMPTS, language_output_instruction
from app.agent.prompts.persona import create_brand_section, create_voice_section
from app.core.config import settings


class EditorAgent(BaseAgent[EditingInput, EditedContent]):
    """Polishes a draft without changing its meaning or persona voice."""

    step_name = "edit"

    def __init__(self):
        super().__init__(model_name=settings.MODEL_EDITOR)

    async def run(self, input_data: EditingInput) -> EditedContent:
        persona = input_data.brief.persona
        parts = [EDITOR_SYSTEM_PROMPTS[input_data.brief.layout].strip()]
        # Voice and blacklisted words must survive editing.
        for section in (create_voice_section(persona), create_brand_section(persona)):
            if section:
                parts.append(section)
        parts.append(language_output_instruction(persona.language.primary))

        text = await self.llm.generate_text(
            system_prompt="\n\n".join(parts),
            user_prompt=f"Draft to edit:\n\n{input_data.draft.writing}",
        )
        return EditedContent(editor=text)
