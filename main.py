"""
SheetAssist - Knowledge Base Answering with Language Model Fallback

Answers questions from a curated spreadsheet of question/answer pairs and
falls back to a hosted language model when no entry is relevant enough,
always reporting which source answered.

Usage:
    python main.py ask "How do I reset my password?"
    python main.py serve --port 8000

Author: Quinn Evans
"""

import argparse
import sys

from config import load_config
from entry_store import entry_store_from_config
from knowledge import AssistError
from llm import LLMManager
from response_manager import ResponseManager


class SheetAssistApp:
    """
    Command-line front end wiring the entry store, generator and router
    from environment settings.
    """

    def __init__(self):
        self.config = load_config()
        self.response_manager = ResponseManager(
            entry_store=entry_store_from_config(),
            llm=LLMManager(),
            config=self.config,
        )

    def ask(self, question: str) -> int:
        try:
            answer = self.response_manager.respond([{"role": "user", "content": question}])
        except AssistError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

        provenance = answer.provenance
        print(answer.reply)
        print()
        line = f"[source={provenance.source} score={provenance.score * 100:.0f}%"
        if provenance.question:
            line += f" question={provenance.question!r}"
        print(line + "]")
        return 0


def serve(host: str, port: int):
    import uvicorn

    uvicorn.run("backend_server.main_server:app", host=host, port=port, reload=False)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="sheetassist", description=__doc__.strip().splitlines()[0])
    commands = parser.add_subparsers(dest="command", required=True)

    ask_parser = commands.add_parser("ask", help="answer one question and exit")
    ask_parser.add_argument("question", nargs="+")

    serve_parser = commands.add_parser("serve", help="run the HTTP backend")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)
    if args.command == "serve":
        serve(args.host, args.port)
        return 0
    return SheetAssistApp().ask(" ".join(args.question))


if __name__ == "__main__":
    sys.exit(main())
