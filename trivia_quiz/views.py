"""
Discord embeds and button views for the Trivia Quiz.
"""
from typing import Any, Dict, Optional, Sequence, Tuple

import discord

from .models import Question, SessionConfig
from .quiz_engine import count_matching, list_categories, list_difficulties

# Embed colours
COLOR_QUESTION = 0x4c1d95
COLOR_CORRECT = 0x22c55e
COLOR_WRONG = 0xef4444
COLOR_COMPLETE = 0xfcd34d
COLOR_MENU = 0x1e3a8a
COLOR_ERROR = 0xff0000

# Discord allows 5 buttons per row, keep controls on their own row
MAX_OPTION_BUTTONS = 20
CONTROL_ROW = 4


def build_question_embed(snapshot: Dict[str, Any]) -> discord.Embed:
    """Render the current question, feedback and hint of an active session."""
    question = snapshot['question']
    feedback = snapshot['feedback']

    if feedback is None:
        color = COLOR_QUESTION
    elif feedback.is_correct:
        color = COLOR_CORRECT
    else:
        color = COLOR_WRONG

    embed = discord.Embed(
        title=f"🎯 Question {snapshot['current_question']}/{snapshot['total_questions']}",
        description=f"**{question.prompt}**",
        color=color
    )

    embed.add_field(
        name="📚 Quiz",
        value=f"{snapshot['category']} ({snapshot['difficulty']})",
        inline=True
    )
    embed.add_field(name="🏆 Score", value=str(snapshot['score']), inline=True)

    if feedback is not None:
        if feedback.is_correct:
            verdict = "✅ Correct!"
        else:
            verdict = f"❌ Wrong! The answer was **{question.correct_option}**"
        embed.add_field(name="Result", value=verdict, inline=False)

    if snapshot['hint_visible']:
        embed.add_field(name="💡 Hint", value=question.hint or "No hint for this one.", inline=False)

    if feedback is not None:
        embed.set_footer(text="Next question coming up...")
    return embed


def build_completion_embed(snapshot: Dict[str, Any], score_text: str) -> discord.Embed:
    """Render the game-over screen."""
    embed = discord.Embed(
        title="🎉 Game Over!",
        description=f"Your final score is: **{score_text}**",
        color=COLOR_COMPLETE
    )
    embed.add_field(
        name="📚 Quiz",
        value=f"{snapshot['category']} ({snapshot['difficulty']})",
        inline=False
    )
    embed.set_footer(text="Play again, or pick another category from the menu.")
    return embed


def build_menu_embed(
    categories: Sequence[str],
    difficulties: Sequence[str],
    counts: Dict[Tuple[str, str], int]
) -> discord.Embed:
    """Render the category/difficulty selection menu."""
    embed = discord.Embed(
        title="🧠 Trivia Challenge",
        description="Select a category and difficulty with `/trivia` to begin!",
        color=COLOR_MENU
    )

    for category in categories:
        lines = []
        for difficulty in difficulties:
            count = counts.get((category, difficulty), 0)
            if count:
                lines.append(f"{difficulty}: {count} question{'s' if count != 1 else ''}")
        if lines:
            embed.add_field(name=category, value="\n".join(lines), inline=True)

    if not embed.fields:
        embed.add_field(name="No questions", value="The question catalog is empty.", inline=False)
    return embed


def build_error_embed(message: str, title: str = "❌ Error") -> discord.Embed:
    return discord.Embed(title=title, description=message, color=COLOR_ERROR)


class AnswerButton(discord.ui.Button):
    """One answer option of the current question."""

    def __init__(self, option_index: int, label: str, style: discord.ButtonStyle, disabled: bool):
        super().__init__(
            label=label[:80],
            style=style,
            disabled=disabled,
            row=option_index // 5
        )
        self.option_index = option_index

    async def callback(self, interaction: discord.Interaction):
        await self.view.bot.handle_answer(interaction, self.view.generation, self.view.question_index, self.option_index)


class HintButton(discord.ui.Button):
    def __init__(self, hint_visible: bool):
        super().__init__(
            label="Hide Hint" if hint_visible else "Show Hint",
            style=discord.ButtonStyle.secondary,
            emoji="💡",
            row=CONTROL_ROW
        )

    async def callback(self, interaction: discord.Interaction):
        await self.view.bot.handle_hint(interaction, self.view.generation)


class MenuButton(discord.ui.Button):
    def __init__(self, label: str = "Menu"):
        super().__init__(label=label, style=discord.ButtonStyle.secondary, row=CONTROL_ROW)

    async def callback(self, interaction: discord.Interaction):
        await self.view.bot.handle_menu(interaction, self.view.generation)


class PlayAgainButton(discord.ui.Button):
    def __init__(self):
        super().__init__(label="Play Again", style=discord.ButtonStyle.primary, emoji="🔁", row=0)

    async def callback(self, interaction: discord.Interaction):
        await self.view.bot.handle_play_again(interaction, self.view.generation)


class QuestionView(discord.ui.View):
    """
    Buttons for an active question.

    The view remembers which session generation and question it was drawn
    for, so clicks on an outdated panel are rejected instead of answering a
    different question.
    """

    def __init__(self, bot, owner_id: int, snapshot: Dict[str, Any], timeout: Optional[float] = 900):
        super().__init__(timeout=timeout)
        self.bot = bot
        self.owner_id = owner_id
        self.generation = snapshot['generation']
        self.question_index = snapshot['current_index']

        question = snapshot['question']
        feedback = snapshot['feedback']
        locked = feedback is not None

        for index, option in enumerate(question.options[:MAX_OPTION_BUTTONS]):
            self.add_item(AnswerButton(index, option, self._option_style(index, question.correct_index, feedback), locked))

        self.add_item(HintButton(snapshot['hint_visible']))
        self.add_item(MenuButton())

    async def on_timeout(self):
        await self.bot.expire_session(self.owner_id, self)

    @staticmethod
    def _option_style(index: int, correct_index: int, feedback) -> discord.ButtonStyle:
        if feedback is None:
            return discord.ButtonStyle.primary
        if index == feedback.selected_index:
            return discord.ButtonStyle.success if feedback.is_correct else discord.ButtonStyle.danger
        if index == correct_index:
            return discord.ButtonStyle.success
        return discord.ButtonStyle.secondary


class CompletionView(discord.ui.View):
    """Buttons for the game-over screen."""

    def __init__(self, bot, owner_id: int, snapshot: Dict[str, Any], timeout: Optional[float] = 900):
        super().__init__(timeout=timeout)
        self.bot = bot
        self.owner_id = owner_id
        self.generation = snapshot['generation']
        self.add_item(PlayAgainButton())
        self.add_item(MenuButton("Main Menu"))

    async def on_timeout(self):
        await self.bot.expire_session(self.owner_id, self)


def menu_counts(catalog: Sequence[Question]) -> Dict[Tuple[str, str], int]:
    """Question counts for every category/difficulty pair in the catalog."""
    categories = list_categories(catalog)
    difficulties = list_difficulties(catalog)
    return {
        (category, difficulty): count_matching(catalog, SessionConfig(category, difficulty))
        for category in categories
        for difficulty in difficulties
    }
