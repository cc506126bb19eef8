"""
Command-line entry points: run the proxy server or chat through it.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys

import uvicorn

from chatrag.client import ChatClient
from chatrag.config import Configuration
from chatrag.conversation import ConversationState
from chatrag.logging_utils import configure_logging
from chatrag.models import ConversationMessage
from chatrag.proxy import create_app

NEW_CHAT_COMMAND = "/new"
EXIT_COMMANDS = ("/quit", "/exit")


async def serve(config: Configuration) -> None:
    """Run the stream proxy until interrupted."""
    server_config = config.get_server_config()
    app = create_app(config)

    uvicorn_config = uvicorn.Config(
        app,
        host=server_config["host"],
        port=server_config["port"],
        log_config=None,
    )
    server = uvicorn.Server(uvicorn_config)
    logging.info(
        f"Proxy listening on http://{server_config['host']}:{server_config['port']}"
        f"{server_config['proxy_path']}"
    )
    await server.serve()


class TerminalRenderer:
    """Prints an assistant answer incrementally as the transcript grows."""

    def __init__(self, out=None) -> None:
        self.out = out or sys.stdout
        self._message_id: str | None = None
        self._printed = ""

    def __call__(self, state: ConversationState, _scroll_to_bottom: bool) -> None:
        message = state.last_message
        if message is None or message.sender != "assistant":
            return

        if message.id != self._message_id:
            self._message_id = message.id
            self._printed = ""
            self.out.write("AI: ")

        # Fallback text replaces what was streamed so far
        if not message.text.startswith(self._printed):
            self.out.write("\n")
            self._printed = ""

        self.out.write(message.text[len(self._printed):])
        self._printed = message.text
        self.out.flush()

    def render_sources(self, message: ConversationMessage | None) -> None:
        if message is None or not message.sources:
            return
        self.out.write("Sources:\n")
        for source in message.sources:
            line = f"  - {source.filename} (ID: {source.file_id})"
            if source.score is not None:
                line += f" score={source.score:.4f}"
            self.out.write(line + "\n")
            if source.excerpt:
                self.out.write(f'    "{source.excerpt}"\n')
        self.out.flush()


async def chat(config: Configuration) -> None:
    """Interactive terminal chat against a running proxy."""
    renderer = TerminalRenderer()
    async with ChatClient.from_config(
        config.get_client_config(), on_update=renderer
    ) as client:
        print(f"Chatting via {client.proxy_url}. {NEW_CHAT_COMMAND} resets, "
              f"{EXIT_COMMANDS[0]} exits.")
        while True:
            try:
                text = await asyncio.to_thread(input, "You: ")
            except EOFError:
                break

            command = text.strip()
            if command in EXIT_COMMANDS:
                break
            if command == NEW_CHAT_COMMAND:
                client.reset()
                print("Started a new chat.")
                continue

            state = await client.send(text)
            if state.last_message is None or state.last_message.sender != "assistant":
                continue
            print()
            renderer.render_sources(state.last_message)
            if state.error:
                print(f"Error: {state.error}")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chatrag", description=__doc__)
    parser.add_argument(
        "--config", help="Path to a YAML config file (defaults to the bundled one)"
    )
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser("serve", help="Run the streaming proxy")
    subcommands.add_parser("chat", help="Chat in the terminal through the proxy")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_arg_parser().parse_args(argv)
    config = Configuration(args.config)
    configure_logging(config.get_logging_config())

    entry = serve if args.command == "serve" else chat
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(entry(config))


if __name__ == "__main__":
    main()
