"""
Bedrock Task Agent - run one coding task against a directory with Claude on Amazon Bedrock.
Terminal output rendered with Rich.
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Confirm
from rich.text import Text

from agent import AgentExecutor, PendingPermission, ProgressNotifier
from bedrock_service import BedrockApiClient
from config import app_config, aws_config, model_config
from errors import AgentError, TaskTimeoutError
from sessions import SessionStore

# Configure logging to file so it doesn't interleave with console output
logging.basicConfig(
    filename=app_config.log_file,
    level=getattr(logging, app_config.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

console = Console()


# ============================================================
# Rendering
# ============================================================

def render_diff(diff: str) -> Text:
    """Colorize a unified diff, git style."""
    out = Text()
    for line in diff.splitlines():
        if line.startswith(("---", "+++")):
            out.append(line + "\n", style="bold #8b949e")
        elif line.startswith("@@"):
            out.append(line + "\n", style="#79c0ff")
        elif line.startswith("+"):
            out.append(line + "\n", style="#3fb950")
        elif line.startswith("-"):
            out.append(line + "\n", style="#f85149")
        else:
            out.append(line + "\n", style="#6e7681")
    return out


def render_progress(message: str) -> None:
    if message.startswith("--- "):
        console.print(render_diff(message))
    elif message == "[TOOL_EXECUTED]":
        console.print(Text("  ✓ done", style="dim green"))
    elif message.startswith("[error]"):
        console.print(Text(message, style="bold red"))
    elif message.startswith("[debug]"):
        console.print(Text(message, style="dim"))
    elif message.startswith("⏺"):
        console.print(Text(message, style="bold cyan"))
    else:
        console.print(Text(message, style="yellow"))


async def _print_progress(notifier: ProgressNotifier) -> None:
    async for message in notifier.stream():
        render_progress(message)


def make_approval_callback(notifier: ProgressNotifier, assume_yes: bool):
    async def request_approval(pending: PendingPermission) -> bool:
        if assume_yes:
            return True
        # flush queued progress so the diff is on screen before the question
        for message in notifier.drain():
            render_progress(message)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, lambda: Confirm.ask(f"[bold]Allow[/] {pending.human_description}?", default=False)
        )
    return request_approval


# ============================================================
# Task runner
# ============================================================

async def run_task(task: str, working_dir: str, timeout: Optional[float], assume_yes: bool,
                   session_name: Optional[str]) -> int:
    notifier = ProgressNotifier(maxsize=app_config.progress_buffer_size)
    executor = AgentExecutor(
        BedrockApiClient(),
        working_directory=working_dir,
        notifier=notifier,
        request_approval=make_approval_callback(notifier, assume_yes),
    )

    store = session = None
    if session_name:
        store = SessionStore()
        session = store.open(working_dir, model_config.model_id, session_name)
        if session.history:
            executor.set_conversation_history(session.messages())
            console.print(Text(f"Continuing session '{session.name}' ({session.task_count} earlier task(s))", style="dim"))

    printer = asyncio.create_task(_print_progress(notifier))
    exit_code = 0
    answer = ""
    try:
        answer = await executor.execute(task, timeout=timeout)
    except TaskTimeoutError as e:
        console.print(Text(f"Timed out: {e}", style="bold red"))
        exit_code = 2
    except AgentError as e:
        logger.exception("Task failed")
        console.print(Text(f"Task failed: {e}", style="bold red"))
        exit_code = 1
    finally:
        notifier.close()
        await printer

    if answer:
        console.print(Panel(Markdown(answer), title="Result", border_style="green"))
    if executor.state.limit_reached:
        console.print(Text(f"Stopped at the {executor.max_rounds}-round limit.", style="yellow"))
    if notifier.dropped:
        logger.info(f"{notifier.dropped} progress message(s) dropped")

    if store is not None and session is not None:
        session.set_messages(executor.get_conversation_history())
        session.last_status = executor.state.status.value
        session.rounds = executor.state.loop_count
        store.save(session)
    return exit_code


# ============================================================
# Entry Point
# ============================================================

def main():
    parser = argparse.ArgumentParser(
        description=f"{app_config.title} - run a coding task with Claude on Amazon Bedrock",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bedrock-task "Add type hints to utils.py"
  bedrock-task -d ~/my-project "Fix the failing test" --yes
  bedrock-task --session refactor "Now update the README"
        """,
    )
    parser.add_argument("task", help="Task for the agent to carry out")
    parser.add_argument(
        "-d", "--directory",
        default=app_config.working_directory,
        help="Working directory for the agent (default: current directory)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help=f"Wall-clock limit in seconds, 0 for none (default: {app_config.task_timeout:g})",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Approve every edit and shell command without asking",
    )
    parser.add_argument(
        "--session",
        default=None,
        help="Save the conversation under this name and continue it on later runs",
    )

    args = parser.parse_args()

    working_dir = os.path.abspath(args.directory)
    if not os.path.isdir(working_dir):
        console.print(f"[red]Error:[/] {working_dir} is not a directory")
        sys.exit(1)

    logger.info(f"Starting task in {working_dir} with {model_config.model_id} using {aws_config.describe()}")
    sys.exit(asyncio.run(run_task(args.task, working_dir, args.timeout, args.yes, args.session)))


if __name__ == "__main__":
    main()
