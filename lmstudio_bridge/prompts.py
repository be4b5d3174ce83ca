"""Prompt templates and user-facing strings."""

from __future__ import annotations

from pydantic import BaseModel

TERM_TOKEN = "{TERM}"


class PromptSettings(BaseModel):
    default_system_prompt: str = "You are a helpful AI assistant."
    query_placeholder: str = "Ask me anything..."
    system_prompt_placeholder: str = "Enter system prompt..."
    article_term_placeholder: str = "Enter a term to generate an article about..."
    article_term_description: str = "The term to generate an article about"
    enter_question_notice: str = "Please enter a question"
    enter_term_notice: str = "Please enter a term"
    article_generator_template: str = (
        "Generate a comprehensive article about: {TERM}"
    )
    image_references_prompt: str = "Include relevant images for: {content}"


class PromptsService:
    """Read access to prompt settings plus article prompt expansion."""

    def __init__(self, settings: PromptSettings | None = None):
        self.settings = settings or PromptSettings()

    @property
    def default_system_prompt(self) -> str:
        return self.settings.default_system_prompt

    @property
    def query_placeholder(self) -> str:
        return self.settings.query_placeholder

    @property
    def system_prompt_placeholder(self) -> str:
        return self.settings.system_prompt_placeholder

    @property
    def article_term_placeholder(self) -> str:
        return self.settings.article_term_placeholder

    @property
    def article_term_description(self) -> str:
        return self.settings.article_term_description

    @property
    def enter_question_notice(self) -> str:
        return self.settings.enter_question_notice

    @property
    def enter_term_notice(self) -> str:
        return self.settings.enter_term_notice

    @property
    def image_references_prompt(self) -> str:
        return self.settings.image_references_prompt

    def article_prompt(self, term: str) -> str:
        """Expand the article generator template for ``term``."""
        return self.settings.article_generator_template.replace(TERM_TOKEN, term)

    def update_settings(self, settings: PromptSettings) -> None:
        self.settings = settings
