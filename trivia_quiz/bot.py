import discord
from discord import app_commands
from discord.ext import commands
import logging
import os
import random
from dataclasses import dataclass
from functools import partial
from typing import Any, Dict, List, Optional, Tuple

from .config_manager import ConfigManager
from .data_manager import CatalogUnavailableError, DataManager
from .models import Question, SessionConfig, SessionPhase
from .quiz_controller import QuizController, QuizControllerError
from .quiz_engine import list_categories, list_difficulties
from .views import (
    CompletionView,
    QuestionView,
    build_completion_embed,
    build_error_embed,
    build_menu_embed,
    build_question_embed,
    menu_counts,
)

logger = logging.getLogger(__name__)

EXPIRED_MESSAGE = "This quiz panel has expired. Start a new quiz with `/trivia`."


@dataclass
class PlayerSession:
    """A player's controller, the catalog it was built on, and their quiz panel."""
    controller: QuizController
    catalog: Optional[Tuple[Question, ...]] = None
    interaction: Optional[discord.Interaction] = None
    view: Optional[discord.ui.View] = None


class TriviaBot(commands.Bot):
    """Discord bot serving private single-player trivia sessions"""

    def __init__(self, config=None):
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,  # Fallback prefix, mainly using slash commands
            intents=intents,
            help_command=None
        )

        # Store configuration
        self.app_config = config or {}

        self.config_manager = ConfigManager()
        self.data_manager: Optional[DataManager] = None
        self.catalog: Optional[Tuple[Question, ...]] = None
        self.catalog_error: Optional[str] = None

        # One private session per Discord user
        self.sessions: Dict[int, PlayerSession] = {}

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            if self.app_config:
                self.config_manager.apply_config(self.app_config)

            self.data_manager = DataManager(self.config_manager.get_catalog_path())
            self.load_catalog()

            await self.setup_commands()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def load_catalog(self) -> bool:
        """
        Load (or reload) the question catalog.

        Returns:
            True if the catalog is available afterwards
        """
        try:
            self.catalog = self.data_manager.load_catalog()
            self.catalog_error = None
        except CatalogUnavailableError as e:
            self.catalog = None
            self.catalog_error = str(e)
            logger.error(f"Question catalog unavailable: {e}")
            return False

        # Running games finish on the catalog they started with
        for user_id in [uid for uid, player in self.sessions.items()
                        if player.controller.phase == SessionPhase.IDLE]:
            self._discard_session(user_id)

        logger.info(f"Catalog ready with {len(self.catalog)} questions")
        return True

    async def setup_commands(self):
        """Register all slash commands"""

        @self.tree.command(name="help", description="Show how to play and the available commands")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="trivia", description="Start a trivia quiz for a category and difficulty")
        @app_commands.describe(category="Question category", difficulty="Question difficulty")
        async def trivia_command(interaction: discord.Interaction, category: Optional[str] = None,
                                 difficulty: Optional[str] = None):
            await self.handle_trivia(interaction, category, difficulty)

        @trivia_command.autocomplete('category')
        async def category_autocomplete(interaction: discord.Interaction, current: str):
            return self.build_choices(list_categories(self.catalog or ()), current)

        @trivia_command.autocomplete('difficulty')
        async def difficulty_autocomplete(interaction: discord.Interaction, current: str):
            return self.build_choices(list_difficulties(self.catalog or ()), current)

        @self.tree.command(name="categories", description="List categories, difficulties and question counts")
        async def categories_command(interaction: discord.Interaction):
            await self.handle_categories(interaction)

        @self.tree.command(name="status", description="Show your current quiz progress")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="quit", description="Leave your current quiz and return to the menu")
        async def quit_command(interaction: discord.Interaction):
            await self.handle_quit(interaction)

        @self.tree.command(name="reload", description="Reload the question catalog")
        @app_commands.default_permissions(manage_guild=True)
        async def reload_command(interaction: discord.Interaction):
            await self.handle_reload(interaction)

        logger.info("Slash commands registered successfully")

    @staticmethod
    def build_choices(values: List[str], current: str) -> List[app_commands.Choice[str]]:
        current = (current or "").lower()
        return [
            app_commands.Choice(name=value, value=value)
            for value in values
            if current in value.lower()
        ][:25]

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    # Sessions

    def get_player_session(self, user_id: int) -> PlayerSession:
        """
        Get or create the private session for a user.

        A session built on an older catalog is replaced as soon as its game is
        no longer running, so a reload reaches every player's next game.
        """
        player = self.sessions.get(user_id)
        if (player is not None and player.catalog is not self.catalog
                and player.controller.phase != SessionPhase.ACTIVE):
            logger.info(f"Rebuilding session for user {user_id} on the reloaded catalog")
            self._discard_session(user_id)
            player = None

        if player is None:
            seed = self.config_manager.get_shuffle_seed()
            controller = QuizController(
                self.catalog,
                reveal_delay=self.config_manager.get_reveal_delay(),
                rng=random.Random(seed) if seed is not None else None,
                session_label=f"user-{user_id}",
                on_change=partial(self.on_session_change, user_id)
            )
            player = PlayerSession(controller, self.catalog)
            self.sessions[user_id] = player
        return player

    def _discard_session(self, user_id: int):
        player = self.sessions.pop(user_id, None)
        if player is not None and player.view is not None:
            player.view.stop()

    async def expire_session(self, user_id: int, view: discord.ui.View):
        """Close a session whose live quiz panel timed out."""
        player = self.sessions.get(user_id)
        if player is None or player.view is not view:
            return

        player.controller.return_to_menu()
        del self.sessions[user_id]
        logger.info(f"Quiz panel for user {user_id} timed out, session closed")

    def render_session(self, user_id: int, player: PlayerSession) -> Tuple[discord.Embed, Optional[discord.ui.View]]:
        """Embed and view for the player's current phase. The view replaces the player's live panel."""
        controller = player.controller
        snapshot = controller.get_snapshot()
        if controller.phase == SessionPhase.ACTIVE:
            embed, view = build_question_embed(snapshot), QuestionView(self, user_id, snapshot)
        elif controller.phase == SessionPhase.COMPLETE:
            embed = build_completion_embed(snapshot, controller.get_final_score_text())
            view = CompletionView(self, user_id, snapshot)
        else:
            embed, view = self.build_menu(), None

        # Only one panel per player accepts clicks
        if player.view is not None:
            player.view.stop()
        player.view = view
        return embed, view

    def build_menu(self) -> discord.Embed:
        catalog = self.catalog or ()
        return build_menu_embed(list_categories(catalog), list_difficulties(catalog), menu_counts(catalog))

    async def on_session_change(self, user_id: int, snapshot: Dict[str, Any]):
        """Redraw a player's quiz panel after the reveal window ends."""
        player = self.sessions.get(user_id)
        if player is None or player.interaction is None:
            return

        embed, view = self.render_session(user_id, player)
        try:
            await player.interaction.edit_original_response(embed=embed, view=view)
        except discord.HTTPException as e:
            logger.error(f"Failed to update quiz panel for user {user_id}: {e}")

    @staticmethod
    def _panel_is_current(controller: QuizController, generation: int, question_index: Optional[int] = None) -> bool:
        state = controller.state
        if state.generation != generation:
            return False
        return question_index is None or state.current_index == question_index

    # Command handlers

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        embed = discord.Embed(
            title="🧠 Trivia Challenge - Help",
            description="Answer multiple-choice questions and see how many you get right!",
            color=0x6699ff
        )
        embed.add_field(
            name="🎮 Playing",
            value=(
                "`/trivia category difficulty` - Start a quiz\n"
                "`/categories` - See what you can play\n"
                "`/status` - Show your progress\n"
                "`/quit` - Leave your quiz"
            ),
            inline=False
        )
        embed.add_field(
            name="⚙️ Admin",
            value="`/reload` - Reload the question catalog",
            inline=False
        )
        embed.set_footer(
            text=f"Answers are shown for {self.config_manager.get_reveal_delay():g} seconds before the next question."
        )
        try:
            await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Failed to send help: {e}")

    async def handle_trivia(self, interaction: discord.Interaction, category: Optional[str], difficulty: Optional[str]):
        """Handle /trivia command"""
        if self.catalog is None:
            await self.send_catalog_unavailable(interaction)
            return

        default = self.config_manager.get_default_selection()
        config = SessionConfig(category or default.category, difficulty or default.difficulty)

        user_id = interaction.user.id
        player = self.get_player_session(user_id)
        controller = player.controller
        if controller.phase == SessionPhase.COMPLETE:
            controller.restart()

        result = controller.start_quiz(config)
        if not result['success']:
            if controller.phase == SessionPhase.IDLE:
                self._discard_session(user_id)
            await self.send_error_response(interaction, result['user_message'], "❌ Quiz Start Failed")
            return

        player.interaction = interaction
        embed, view = self.render_session(user_id, player)
        try:
            await interaction.response.send_message(embed=embed, view=view, ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Failed to present quiz to user {user_id}: {e}")
            controller.return_to_menu()
            self._discard_session(user_id)

    async def handle_answer(self, interaction: discord.Interaction, generation: int, question_index: int,
                            option_index: int):
        """Handle an answer button press"""
        player = self.sessions.get(interaction.user.id)
        if player is None or not self._panel_is_current(player.controller, generation, question_index):
            await self.send_info_response(interaction, EXPIRED_MESSAGE)
            return

        controller = player.controller
        try:
            feedback = controller.submit_answer(option_index)
        except (QuizControllerError, ValueError) as e:
            logger.warning(f"Rejected answer from user {interaction.user.id}: {e}")
            await self.send_info_response(interaction, EXPIRED_MESSAGE)
            return

        if feedback is None:
            # Duplicate click during the reveal window
            await interaction.response.defer()
            return

        player.interaction = interaction
        embed, view = self.render_session(interaction.user.id, player)
        try:
            await interaction.response.edit_message(embed=embed, view=view)
        except discord.HTTPException as e:
            logger.error(f"Failed to show feedback to user {interaction.user.id}: {e}")

    async def handle_hint(self, interaction: discord.Interaction, generation: int):
        """Handle the hint toggle button"""
        player = self.sessions.get(interaction.user.id)
        if player is None or not self._panel_is_current(player.controller, generation):
            await self.send_info_response(interaction, EXPIRED_MESSAGE)
            return

        if not player.controller.toggle_hint():
            await self.send_info_response(interaction, EXPIRED_MESSAGE)
            return

        player.interaction = interaction
        embed, view = self.render_session(interaction.user.id, player)
        try:
            await interaction.response.edit_message(embed=embed, view=view)
        except discord.HTTPException as e:
            logger.error(f"Failed to toggle hint for user {interaction.user.id}: {e}")

    async def handle_menu(self, interaction: discord.Interaction, generation: int):
        """Handle the Menu / Main Menu buttons"""
        player = self.sessions.get(interaction.user.id)
        if player is None or not self._panel_is_current(player.controller, generation):
            await self.send_info_response(interaction, EXPIRED_MESSAGE)
            return

        player.controller.return_to_menu()
        self._discard_session(interaction.user.id)
        try:
            await interaction.response.edit_message(embed=self.build_menu(), view=None)
        except discord.HTTPException as e:
            logger.error(f"Failed to show menu to user {interaction.user.id}: {e}")

    async def handle_play_again(self, interaction: discord.Interaction, generation: int):
        """Handle the Play Again button"""
        user_id = interaction.user.id
        player = self.sessions.get(user_id)
        if player is None or not self._panel_is_current(player.controller, generation):
            await self.send_info_response(interaction, EXPIRED_MESSAGE)
            return

        if self.catalog is None:
            await self.send_catalog_unavailable(interaction)
            return

        config = player.controller.last_config
        player = self.get_player_session(user_id)
        controller = player.controller
        try:
            if controller.last_config is None and config is not None:
                # Session was rebuilt on a reloaded catalog
                controller.start(config)
            else:
                controller.play_again()
        except (QuizControllerError, CatalogUnavailableError) as e:
            logger.warning(f"Play again failed for user {user_id}: {e}")
            if controller.phase == SessionPhase.IDLE:
                self._discard_session(user_id)
            await self.send_error_response(interaction, "Could not start a new game. Try `/trivia`.")
            return

        player.interaction = interaction
        embed, view = self.render_session(user_id, player)
        try:
            await interaction.response.edit_message(embed=embed, view=view)
        except discord.HTTPException as e:
            logger.error(f"Failed to start new game for user {user_id}: {e}")

    async def handle_categories(self, interaction: discord.Interaction):
        """Handle /categories command"""
        if self.catalog is None:
            await self.send_catalog_unavailable(interaction)
            return
        await interaction.response.send_message(embed=self.build_menu(), ephemeral=True)

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        player = self.sessions.get(interaction.user.id)
        if player is None or player.controller.phase == SessionPhase.IDLE:
            await self.send_info_response(interaction, "You don't have a quiz running. Start one with `/trivia`.")
            return

        controller = player.controller
        snapshot = controller.get_snapshot()
        if controller.phase == SessionPhase.ACTIVE:
            embed = build_question_embed(snapshot)
        else:
            embed = build_completion_embed(snapshot, controller.get_final_score_text())
        await interaction.response.send_message(embed=embed, ephemeral=True)

    async def handle_quit(self, interaction: discord.Interaction):
        """Handle /quit command"""
        player = self.sessions.get(interaction.user.id)
        if player is None or player.controller.phase == SessionPhase.IDLE:
            await self.send_info_response(interaction, "You don't have a quiz running.")
            return

        player.controller.return_to_menu()
        if player.interaction is not None:
            try:
                await player.interaction.edit_original_response(embed=self.build_menu(), view=None)
            except discord.HTTPException as e:
                logger.warning(f"Could not close quiz panel for user {interaction.user.id}: {e}")
        self._discard_session(interaction.user.id)

        await self.send_info_response(interaction, "Quiz ended. Pick a new one with `/trivia`.", "👋 Back to Menu")

    async def handle_reload(self, interaction: discord.Interaction):
        """Handle /reload command"""
        if self.load_catalog():
            await self.send_info_response(
                interaction,
                f"Loaded {len(self.catalog)} questions.",
                "✅ Catalog Reloaded"
            )
        else:
            errors = self.data_manager.get_load_errors()
            detail = "\n".join(errors[:3]) or self.catalog_error
            await self.send_error_response(interaction, f"```\n{detail}\n```", "❌ Catalog Reload Failed")

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send an ephemeral error embed."""
        embed = build_error_embed(message, title)
        embed.set_footer(text="Use /help to see what the bot can do")
        await self._send_ephemeral(interaction, embed)

    async def send_catalog_unavailable(self, interaction: discord.Interaction):
        await self.send_error_response(
            interaction,
            "Failed to load questions. Please try again later.",
            "❌ Questions Unavailable"
        )

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send an ephemeral informational embed."""
        await self._send_ephemeral(interaction, discord.Embed(title=title, description=message, color=0x6699ff))

    @staticmethod
    async def _send_ephemeral(interaction: discord.Interaction, embed: discord.Embed):
        # Component callbacks may already have been answered
        send = interaction.followup.send if interaction.response.is_done() else interaction.response.send_message
        try:
            await send(embed=embed, ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Failed to reply to user {interaction.user.id}: {e}")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    # Fall back to environment variable if no token provided
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = TriviaBot(config)

    try:
        logger.info("Starting Trivia Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
