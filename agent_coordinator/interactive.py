#!/usr/bin/env python3
"""
Agent Coordinator Interactive CLI

A command-line interface for chatting with a routed set of agents over
one conversation.
"""

import argparse
import json
import logging
import signal
import sys
import threading
from typing import Optional

from .config_loader import load_app_config
from .errors import CoordinatorError, TurnCancelled
from .llm_call import LLMClientFactory
from .retry import NetworkRetry
from .session import Conversation, build_conversation
from .tracing import init_tracing_client, shutdown_tracing

# Global shutdown flag for signal handling
_shutdown_requested = threading.Event()
_current_conversation: Optional[Conversation] = None

logger = logging.getLogger(__name__)


def _signal_handler(signum: int, frame) -> None:
    """Cancel the running turn on SIGINT, or request shutdown when idle."""
    if _current_conversation is not None and _current_conversation.cancel(
        "interrupted by user"
    ):
        print("\n\nCancelling the current turn (after the pending request returns)...")
        return
    if _shutdown_requested.is_set():
        logger.debug("Force shutdown requested")
        sys.exit(1)
    logger.debug("Shutdown requested")
    _shutdown_requested.set()
    print("\n\nShutting down... (press Ctrl+C again to force)")


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    """Configure logging based on verbosity level."""
    resolved = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def print_banner() -> None:
    """Print the welcome banner."""
    banner = """
╔════════════════════════════════════════════════════════════════╗
║                  Agent Coordinator Interactive                  ║
║                                                                 ║
║  Topic-routed assistants with tools and rolling memory         ║
╚════════════════════════════════════════════════════════════════╝

Available commands:
  /help     - Show this help message
  /trace    - Show the trace of the last turn
  /usage    - Show token usage of the conversation
  /agents   - List agents and their tools
  /clear    - Clear conversation history
  /quit     - Exit the CLI

Type your messages below. Ctrl+C cancels a running turn.
"""
    print(banner)


def print_agents(conversation: Conversation) -> None:
    """Print the agents the conversation routes between."""
    coordinator = conversation.coordinator
    print("\nAgents:")
    print("─" * 64)
    for name in coordinator.agent_names():
        agent = coordinator.get_agent(name)
        marker = " (default)" if agent is coordinator.default_agent else ""
        tools = ", ".join(agent.registry.names()) or "no tools"
        print(f"  {name.ljust(16)} {agent.client.model} - {tools}{marker}")
    print()


def print_trace(conversation: Conversation) -> None:
    """Print the trace of the last turn."""
    agent = conversation.last_agent
    trace = agent.get_trace() if agent else []
    if not trace:
        print("\nNo trace available. Send a message first.\n")
        return

    print("\n" + "═" * 70)
    print(f"TRACE ({agent.name})")
    print("═" * 70)

    for step in trace:
        print(f"\n┌─ Step {step['step']}" + ("  [FINAL]" if step["is_final"] else ""))
        print("│")
        if step["thought"]:
            print(f"│  Thought: {step['thought']}")
        if step["action"]:
            print(f"│  Tool: {step['action']}")
        if step["action_input"]:
            print(f"│  Input: {json.dumps(step['action_input'], indent=2)}")
        if step["observation"]:
            obs = step["observation"]
            if len(obs) > 200:
                obs = obs[:200] + "..."
            print(f"│  Tool Response: {obs}")
        if step["final_answer"]:
            print(f"│  Final Answer: {step['final_answer']}")
        print("└" + "─" * 68)

    print()


def print_usage(conversation: Conversation) -> None:
    """Print per-model token usage of the conversation."""
    usage = conversation.token_usage
    if not usage:
        print("\nNo tokens used yet.\n")
        return
    print("\nToken usage:")
    for model, counts in usage.items():
        print(
            f"  {model.ljust(24)} total={counts.total_tokens} "
            f"prompt={counts.prompt_tokens} completion={counts.completion_tokens}"
        )
    print()


class InteractiveCLI:
    """Interactive CLI over a single conversation."""

    def __init__(
        self,
        conversation: Conversation,
        turn_timeout: Optional[float] = None,
        verbose: bool = False,
    ):
        self.conversation = conversation
        self.turn_timeout = turn_timeout
        self.verbose = verbose

    def clear_history(self) -> None:
        self.conversation.reset()
        print("\nConversation history cleared.\n")

    def process_message(self, text: str) -> None:
        print("\n" + "─" * 70)
        try:
            result = self.conversation.handle_turn(text, timeout=self.turn_timeout)
        except TurnCancelled as e:
            print(f"\nTurn cancelled: {e}\n")
            return
        except CoordinatorError as e:
            print(f"\nError: {e}\n")
            if self.verbose:
                import traceback

                traceback.print_exc()
            return

        print(f"[{result.agent}]")
        print("\n".join(result.response))
        if result.actions:
            print(f"\n(Tools used: {', '.join(result.actions)})")
        print("─" * 70 + "\n")

    def run(self) -> None:
        """Run the interactive CLI loop."""
        print_banner()

        while not _shutdown_requested.is_set():
            try:
                user_input = input(">>> ").strip()

                if _shutdown_requested.is_set():
                    break

                if not user_input:
                    continue

                if user_input.startswith("/"):
                    command = user_input.lower()

                    if command in ("/quit", "/exit", "/q"):
                        print("\nGoodbye!\n")
                        break
                    elif command in ("/help", "/h", "/?"):
                        print_banner()
                    elif command == "/trace":
                        print_trace(self.conversation)
                    elif command == "/usage":
                        print_usage(self.conversation)
                    elif command == "/agents":
                        print_agents(self.conversation)
                    elif command == "/clear":
                        self.clear_history()
                    else:
                        print(f"\nUnknown command: {user_input}")
                        print("Type /help for available commands.\n")
                else:
                    self.process_message(user_input)

            except KeyboardInterrupt:
                if _shutdown_requested.is_set():
                    print("\n")
                    break
                print("\n\nType /quit to exit.\n")
            except EOFError:
                print("\nGoodbye!\n")
                break


def main() -> None:
    """Main entry point."""
    global _current_conversation

    parser = argparse.ArgumentParser(
        description="Agent Coordinator Interactive CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                               # Start interactive mode
  %(prog)s -v                            # Start with verbose logging
  %(prog)s -q "How do I cite in APA?"    # Run a single turn
""",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to the YAML config (default: CONFIG_PATH env or config/config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "-q",
        "--query",
        type=str,
        help="Run a single turn and exit",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds before a turn is cancelled",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output single-turn results as JSON (for scripting)",
    )
    args = parser.parse_args()

    try:
        app_config = load_app_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logging(app_config.log_level, args.verbose)

    if app_config.langfuse.enabled and app_config.langfuse.is_configured:
        init_tracing_client(app_config.langfuse)

    factory = LLMClientFactory(
        base_url=app_config.openai.base_url or None,
        api_key=app_config.openai.api_key or None,
        organization=app_config.openai.organization or None,
        retry=NetworkRetry(
            max_attempts=app_config.retry.max_attempts,
            base_delay=app_config.retry.base_delay,
            max_delay=app_config.retry.max_delay,
        ),
        timeout=app_config.openai.timeout,
    )
    conversation = build_conversation(app_config, factory)
    _current_conversation = conversation
    signal.signal(signal.SIGINT, _signal_handler)

    try:
        if args.query:
            try:
                result = conversation.handle_turn(args.query, timeout=args.timeout)
            except CoordinatorError as e:
                print(f"Error: {e}", file=sys.stderr)
                sys.exit(1)
            if args.json:
                print(json.dumps(result.to_dict(), indent=2))
            else:
                print("\n".join(result.response))
        else:
            InteractiveCLI(conversation, args.timeout, args.verbose).run()
    finally:
        factory.close()
        shutdown_tracing()


if __name__ == "__main__":
    main()
