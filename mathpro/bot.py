import discord
from discord import app_commands
from discord.ext import commands
import logging
import asyncio
from typing import Any, List, Optional, Set
import os

from .data_manager import DataManager
from .config_manager import ConfigManager
from .feedback import FeedbackVoice
from .models import (
    AppSettings,
    MultipleChoiceProblem,
    RewardSnapshot,
    TimedDrillProblem,
    TwoWaysProblem,
    TwoWaysSubmission,
    PersonEntry,
)
from .modules import LEARNING_MODULES, LearningModule
from .practice_controller import (
    PracticeController,
    PracticeControllerError,
    ViewState,
    get_user_friendly_error_message,
)
from .rewards import RewardStore

logger = logging.getLogger(__name__)

COLOR_OK = 0x00ff00
COLOR_INFO = 0x6699ff
COLOR_WARN = 0xffaa00
COLOR_ERROR = 0xff0000

TRUE_WORDS = ('on', 'true', 'yes', '1')
FALSE_WORDS = ('off', 'false', 'no', '0')


def format_reward_track(count: int, threshold: int, filled: str = "⭐", empty: str = "☆") -> str:
    """Progress toward the next tier, e.g. ``⭐⭐⭐☆☆ 3/5``."""
    # Long tracks collapse to the numbers only
    if threshold > 10:
        return f"{count}/{threshold}"
    return f"{filled * count}{empty * max(0, threshold - count)} {count}/{threshold}"


def format_base_ten(problem) -> Optional[str]:
    if problem.base_ten is None:
        return None
    picture = problem.base_ten
    parts = []
    if picture.hundreds:
        parts.append(f"🟧 x{picture.hundreds} hundreds")
    parts.append(f"🟦 x{picture.tens} tens")
    parts.append(f"▪️ x{picture.ones} ones")
    return "\n".join(parts)


def parse_setting_value(name: str, raw: str) -> Any:
    """
    Turn slash-command text into a setting value.

    Raises:
        ValueError: If the text is not a number (or on/off for voice feedback)
    """
    text = raw.strip().lower()
    if name == 'voice_feedback_enabled':
        if text in TRUE_WORDS:
            return True
        if text in FALSE_WORDS:
            return False
        raise ValueError(f"Expected on or off, got {raw!r}")
    return int(text)


def build_modules_embed(modules: List[LearningModule]) -> discord.Embed:
    embed = discord.Embed(
        title="📚 Learning Modules",
        description="Pick one with `/practice`",
        color=COLOR_INFO
    )
    for module in modules:
        embed.add_field(
            name=module.title,
            value=f"{module.description}\n`{module.id}`",
            inline=False
        )
    return embed


def build_rewards_embed(rewards: RewardSnapshot, settings: AppSettings) -> discord.Embed:
    embed = discord.Embed(title="🏆 Rewards", color=COLOR_OK)
    embed.add_field(
        name="⭐ Points",
        value=format_reward_track(rewards.points, settings.points_per_medal),
        inline=False
    )
    embed.add_field(
        name="🥇 Medals",
        value=format_reward_track(rewards.medals, settings.medals_per_trophy, filled="🥇", empty="▫️"),
        inline=False
    )
    embed.add_field(name="🏆 Trophies", value=str(rewards.trophies), inline=False)
    return embed


def build_problem_embed(view: ViewState, feedback_lines: Optional[List[str]] = None) -> discord.Embed:
    """Render the current screen: problem, drill state, feedback and rewards."""
    problem = view.problem
    if problem is None:
        embed = discord.Embed(
            title="🧮 MathPro",
            description="No module selected. Use `/modules` to see topics and `/practice` to start.",
            color=COLOR_INFO
        )
        embed.set_footer(text=_rewards_footer(view.rewards))
        return embed

    color = COLOR_OK if view.answered_correctly else COLOR_INFO
    if view.feedback and not view.answered_correctly:
        color = COLOR_WARN

    embed = discord.Embed(title=f"🧮 {view.module_title}", description=problem.question, color=color)

    picture = format_base_ten(problem)
    if picture:
        embed.add_field(name="Quick picture", value=picture, inline=False)

    if isinstance(problem, MultipleChoiceProblem):
        embed.add_field(
            name="Choices",
            value="  ".join(f"`{option}`" for option in problem.options) + "\nAnswer with `/answer`",
            inline=False
        )
    elif isinstance(problem, TwoWaysProblem):
        data = problem.two_ways
        embed.add_field(
            name="How to answer",
            value=(
                f"Use `/two_ways` with tens and ones for **{data.first_name}** and **{data.second_name}**.\n"
                f"Both must make **{data.target}** in different ways."
            ),
            inline=False
        )
    elif isinstance(problem, TimedDrillProblem):
        _add_drill_fields(embed, view)
    else:
        embed.add_field(name="How to answer", value="Type your answer with `/answer`", inline=False)

    if view.feedback:
        embed.add_field(name="Feedback", value=view.feedback, inline=False)
    if feedback_lines:
        embed.add_field(name="🔊", value=" ".join(feedback_lines), inline=False)

    embed.set_footer(text=_rewards_footer(view.rewards))
    return embed


def _add_drill_fields(embed: discord.Embed, view: ViewState) -> None:
    problem = view.problem
    drill = view.drill
    answers = drill.answers if drill else {}

    lines = []
    for number, item in enumerate(problem.drill.items, start=1):
        entered = answers.get(item.id, "")
        lines.append(f"{number}. {item.prompt} {entered or '___'}")

    embed.add_field(name=problem.drill.title, value=problem.drill.instructions, inline=False)
    embed.add_field(name="Items", value="```\n" + "\n".join(lines) + "\n```", inline=False)

    if drill is None:
        return
    if drill.running:
        status = f"⏱️ {drill.remaining_seconds}s left. Use `/drill_answer` then `/drill_finish`."
    elif drill.finished:
        status = "✅ Finished. `/drill_start` to try again or `/new` for new items."
    else:
        status = f"Ready: {drill.remaining_seconds}s on the clock. Use `/drill_start`."
    embed.add_field(name="Timer", value=status, inline=False)


def _rewards_footer(rewards: RewardSnapshot) -> str:
    return f"⭐ {rewards.points}  🥇 {rewards.medals}  🏆 {rewards.trophies}"


class MathProBot(commands.Bot):
    """Discord front end for one learner's practice session"""

    def __init__(self, config=None):
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.data_manager: Optional[DataManager] = None
        self.config_manager: Optional[ConfigManager] = None
        self.practice_controller: Optional[PracticeController] = None

        self._pending_feedback: List[str] = []
        self._drill_channel: Optional[discord.abc.Messageable] = None
        self._summary_tasks: Set[asyncio.Task] = set()

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            state_directory = self.app_config.get('storage', {}).get('state_directory', './data/')
            self.data_manager = DataManager(state_directory)
            self.config_manager = ConfigManager(self.data_manager)
            reward_store = RewardStore(self.data_manager, self.config_manager)

            self.practice_controller = PracticeController(
                self.data_manager,
                self.config_manager,
                reward_store,
                feedback_voice=FeedbackVoice(sink=self.queue_feedback_line),
                on_drill_finished=self.on_drill_finished,
            )
            self.practice_controller.load()

            self.report_loaded_state()

            await self.setup_commands()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    def report_loaded_state(self) -> None:
        """Log where saved state came from and anything that had to be repaired."""
        summary = self.data_manager.get_loading_summary()
        logger.info(
            f"State directory {summary['state_directory']} "
            f"(rewards saved: {summary['rewards_file_exists']}, settings saved: {summary['settings_file_exists']})"
        )
        for error in summary['errors']:
            logger.warning(f"Saved state problem: {error}")
        for issue in self.config_manager.validate_settings()['issues']:
            logger.warning(f"Settings problem after load: {issue}")

    async def setup_commands(self):
        """Register all slash commands"""
        module_choices = [app_commands.Choice(name=module.title, value=module.id) for module in LEARNING_MODULES]
        setting_choices = [app_commands.Choice(name=name, value=name) for name in ConfigManager.SETTING_NAMES]

        @self.tree.command(name="help", description="Show available commands")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="modules", description="List the learning modules")
        async def modules_command(interaction: discord.Interaction):
            await self.handle_modules(interaction)

        @self.tree.command(name="practice", description="Start practicing a module")
        @app_commands.choices(module=module_choices)
        async def practice_command(interaction: discord.Interaction, module: app_commands.Choice[str]):
            await self.handle_practice(interaction, module.value)

        @self.tree.command(name="answer", description="Answer the current problem")
        async def answer_command(interaction: discord.Interaction, value: str):
            await self.handle_answer(interaction, value)

        @self.tree.command(name="two_ways", description="Answer a two-ways tens and ones problem")
        async def two_ways_command(
            interaction: discord.Interaction,
            first_tens: str,
            first_ones: str,
            second_tens: str,
            second_ones: str,
        ):
            await self.handle_two_ways(interaction, first_tens, first_ones, second_tens, second_ones)

        @self.tree.command(name="new", description="Get a new problem from the same module")
        async def new_command(interaction: discord.Interaction):
            await self.handle_new(interaction)

        @self.tree.command(name="drill_start", description="Start or restart the timed drill")
        async def drill_start_command(interaction: discord.Interaction):
            await self.handle_drill_start(interaction)

        @self.tree.command(name="drill_answer", description="Answer one timed drill item")
        async def drill_answer_command(interaction: discord.Interaction, item: int, value: str):
            await self.handle_drill_answer(interaction, item, value)

        @self.tree.command(name="drill_finish", description="Finish the timed drill now")
        async def drill_finish_command(interaction: discord.Interaction):
            await self.handle_drill_finish(interaction)

        @self.tree.command(name="rewards", description="Show points, medals and trophies")
        async def rewards_command(interaction: discord.Interaction):
            await self.handle_rewards(interaction)

        @self.tree.command(name="reset_rewards", description="Set all rewards back to zero")
        async def reset_rewards_command(interaction: discord.Interaction, confirm: bool = False):
            await self.handle_reset_rewards(interaction, confirm)

        @self.tree.command(name="settings", description="Show current settings")
        async def settings_command(interaction: discord.Interaction):
            await self.handle_settings(interaction)

        @self.tree.command(name="set_setting", description="Change one setting")
        @app_commands.choices(name=setting_choices)
        async def set_setting_command(interaction: discord.Interaction, name: app_commands.Choice[str], value: str):
            await self.handle_set_setting(interaction, name.value, value)

        @self.tree.command(name="back", description="Leave the current module")
        async def back_command(interaction: discord.Interaction):
            await self.handle_back(interaction)

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        if self.practice_controller is not None:
            self.practice_controller.shutdown()
        for task in list(self._summary_tasks):
            task.cancel()
        await super().close()

    # --- Feedback and drill completion ------------------------------------------

    def queue_feedback_line(self, line: str) -> None:
        """Feedback sink: lines are shown with the next rendered view."""
        self._pending_feedback.append(line)

    def take_feedback_lines(self) -> List[str]:
        lines = self._pending_feedback
        self._pending_feedback = []
        return lines

    def on_drill_finished(self, view: ViewState) -> None:
        """Called by the controller when the countdown runs out."""
        if self._drill_channel is None:
            logger.warning("Drill finished but no channel to post the summary to")
            return
        task = asyncio.get_running_loop().create_task(self.post_drill_summary(self._drill_channel, view))
        self._summary_tasks.add(task)
        task.add_done_callback(self._summary_tasks.discard)

    async def post_drill_summary(self, channel, view: ViewState):
        try:
            await channel.send(embed=build_problem_embed(view, self.take_feedback_lines()))
        except discord.HTTPException as e:
            logger.error(f"Failed to post drill summary: {e}")

    # --- Command handlers -------------------------------------------------------

    async def run_controller_action(self, interaction: discord.Interaction, operation: str, action, ephemeral: bool = False):
        """
        Run a controller operation and reply with the rendered view.

        Controller errors become short ephemeral error embeds.
        """
        try:
            view = action()
        except PracticeControllerError as e:
            logger.info(f"{operation} rejected: {e}")
            await self.send_error_response(interaction, get_user_friendly_error_message(e), "❌ Can't do that")
            return None
        except Exception as e:
            logger.error(f"Error in {operation} command: {e}")
            await self.send_error_response(interaction, "Something went wrong. Please try again.", "❌ Error")
            return None

        try:
            await interaction.response.send_message(
                embed=build_problem_embed(view, self.take_feedback_lines()),
                ephemeral=ephemeral
            )
        except discord.HTTPException as e:
            logger.error(f"Failed to send {operation} response: {e}")
        return view

    async def handle_help(self, interaction: discord.Interaction):
        try:
            embed = discord.Embed(
                title="🧮 MathPro Commands",
                description="Practice math and earn points, medals and trophies",
                color=COLOR_OK
            )
            embed.add_field(
                name="📚 Practice",
                value=(
                    "`/modules` - List learning modules\n"
                    "`/practice <module>` - Start a module\n"
                    "`/answer <value>` - Answer the current problem\n"
                    "`/two_ways` - Answer a two-ways tens/ones problem\n"
                    "`/new` - New problem\n"
                    "`/back` - Leave the module"
                ),
                inline=False
            )
            embed.add_field(
                name="⏱️ Timed Drill",
                value=(
                    "`/drill_start` - Start or restart the countdown\n"
                    "`/drill_answer <item> <value>` - Answer one item\n"
                    "`/drill_finish` - Finish now"
                ),
                inline=False
            )
            embed.add_field(
                name="🏆 Rewards and Settings",
                value=(
                    "`/rewards` - Show rewards\n"
                    "`/reset_rewards confirm:True` - Reset rewards to zero\n"
                    "`/settings` - Show settings\n"
                    "`/set_setting <name> <value>` - Change a setting"
                ),
                inline=False
            )
            await interaction.response.send_message(embed=embed)
        except discord.HTTPException as e:
            logger.error(f"Error in help command: {e}")

    async def handle_modules(self, interaction: discord.Interaction):
        try:
            await interaction.response.send_message(embed=build_modules_embed(self.practice_controller.get_modules()))
        except discord.HTTPException as e:
            logger.error(f"Error in modules command: {e}")

    async def handle_practice(self, interaction: discord.Interaction, module_id: str):
        await self.run_controller_action(
            interaction, "practice", lambda: self.practice_controller.select_module(module_id)
        )

    async def handle_answer(self, interaction: discord.Interaction, value: str):
        await self.run_controller_action(
            interaction, "answer", lambda: self.practice_controller.submit_answer(value)
        )

    async def handle_two_ways(self, interaction: discord.Interaction, first_tens: str, first_ones: str,
                              second_tens: str, second_ones: str):
        submission = TwoWaysSubmission(
            first=PersonEntry(tens=first_tens, ones=first_ones),
            second=PersonEntry(tens=second_tens, ones=second_ones),
        )
        await self.run_controller_action(
            interaction, "two_ways", lambda: self.practice_controller.submit_answer(submission)
        )

    async def handle_new(self, interaction: discord.Interaction):
        await self.run_controller_action(
            interaction, "new", self.practice_controller.request_new_problem
        )

    async def handle_drill_start(self, interaction: discord.Interaction):
        view = await self.run_controller_action(
            interaction, "drill_start", self.practice_controller.start_timed_drill
        )
        if view is not None:
            self._drill_channel = interaction.channel

    async def handle_drill_answer(self, interaction: discord.Interaction, item: int, value: str):
        await self.run_controller_action(
            interaction,
            "drill_answer",
            lambda: self.practice_controller.update_timed_answer(f"item-{item}", value),
            ephemeral=True
        )

    async def handle_drill_finish(self, interaction: discord.Interaction):
        await self.run_controller_action(
            interaction, "drill_finish", self.practice_controller.finish_timed_drill
        )

    async def handle_rewards(self, interaction: discord.Interaction):
        try:
            view = self.practice_controller.get_view_state()
            await interaction.response.send_message(embed=build_rewards_embed(view.rewards, view.settings))
        except discord.HTTPException as e:
            logger.error(f"Error in rewards command: {e}")

    async def handle_reset_rewards(self, interaction: discord.Interaction, confirm: bool):
        try:
            if not confirm:
                await self.send_warning_response(
                    interaction,
                    "This sets points, medals and trophies back to zero.\n"
                    "Run `/reset_rewards confirm:True` to do it.",
                    "⚠️ Reset rewards?"
                )
                return

            view = self.practice_controller.reset_rewards()
            embed = build_rewards_embed(view.rewards, view.settings)
            embed.title = "🔄 Rewards Reset"
            await interaction.response.send_message(embed=embed)
        except discord.HTTPException as e:
            logger.error(f"Error in reset_rewards command: {e}")

    async def handle_settings(self, interaction: discord.Interaction):
        try:
            embed = discord.Embed(
                title="⚙️ Settings",
                description=f"```\n{self.config_manager.get_settings_summary()}\n```",
                color=COLOR_INFO
            )
            issues = self.config_manager.get_user_friendly_validation_errors()
            if issues:
                embed.add_field(name="⚠️ Issues", value="\n".join(issues), inline=False)
            embed.set_footer(text="Change a setting with /set_setting")
            await interaction.response.send_message(embed=embed)
        except discord.HTTPException as e:
            logger.error(f"Error in settings command: {e}")

    async def handle_set_setting(self, interaction: discord.Interaction, name: str, raw_value: str):
        try:
            try:
                value = parse_setting_value(name, raw_value)
            except ValueError as e:
                await self.send_error_response(interaction, str(e), "❌ Invalid value")
                return

            result = self.practice_controller.update_settings(**{name: value})
            if not result['success']:
                await interaction.response.send_message(
                    result.get('user_message', f"❌ Failed to change setting: {result.get('error', 'Unknown error')}"),
                    ephemeral=True
                )
                return

            change = result['results'][name]
            embed = discord.Embed(title="✅ Setting Updated", description=change['user_message'], color=COLOR_OK)
            if change.get('saved') is False:
                embed.add_field(
                    name="⚠️ Not saved",
                    value="The change applies now but could not be written to disk.",
                    inline=False
                )
            await interaction.response.send_message(embed=embed)
        except discord.HTTPException as e:
            logger.error(f"Error in set_setting command: {e}")

    async def handle_back(self, interaction: discord.Interaction):
        await self.run_controller_action(
            interaction, "back", self.practice_controller.leave_module
        )

    # --- Responses --------------------------------------------------------------

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(title=title, description=message, color=COLOR_ERROR)
            embed.set_footer(text="Use /help to see available commands")

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")

    async def send_warning_response(self, interaction: discord.Interaction, message: str, title: str = "⚠️ Warning"):
        """Send formatted warning response to user"""
        try:
            embed = discord.Embed(title=title, description=message, color=COLOR_WARN)

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send warning response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = MathProBot(config)

    try:
        logger.info("Starting MathPro bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
