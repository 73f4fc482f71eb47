#!/usr/bin/env python3
"""
Interactive Assistant - Terminal Chat

Talk to the GiveHub assistant from the terminal. The script keeps the same
client-side context a browser would (last results and recent messages).

Commands:
  /pay       toggle pay mode (donations are only executed in pay mode)
  /rewrite   send the rest of the line as a single rewrite request
  /results   show the cached results
  /quit      exit
"""

import asyncio
import sys
from pathlib import Path
from typing import List

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.agents import DonationAssistant
from src.api.main import build_default_store
from src.config import settings
from src.core.llm_service import LLMService
from src.data.models import ChatMessage, ConversationContext, ResultRef


class Colors:
    HEADER = '\033[95m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    END = '\033[0m'


def print_header(text: str):
    print(f"\n{Colors.BOLD}{Colors.HEADER}{'='*60}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.HEADER}  {text}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.HEADER}{'='*60}{Colors.END}\n")


def print_section(text: str):
    print(f"\n{Colors.BOLD}{Colors.CYAN}--- {text} ---{Colors.END}")


def display_results(results: List[ResultRef]):
    if not results:
        print(f"{Colors.YELLOW}No cached results yet.{Colors.END}")
        return
    print_section("LAST RESULTS")
    for i, ref in enumerate(results, 1):
        print(f"  {i}. {ref.title} {Colors.BLUE}(#{ref.id}){Colors.END}")


async def run_chat():
    store = await build_default_store(settings)
    assistant = DonationAssistant(store, LLMService())

    last_results: List[ResultRef] = []
    messages: List[ChatMessage] = []
    pay_mode = False

    print_header("GIVEHUB ASSISTANT")
    print("Try: 'search for education', 'suggest something', 'donate 25 to the first one'")
    print("Type /pay to toggle pay mode, /quit to exit.\n")

    try:
        while True:
            mode_tag = f"{Colors.GREEN}[$]{Colors.END} " if pay_mode else ""
            try:
                line = input(f"{mode_tag}{Colors.BOLD}you>{Colors.END} ").strip()
            except EOFError:
                break
            if not line:
                continue

            if line == "/quit":
                break
            if line == "/pay":
                pay_mode = not pay_mode
                print(f"{Colors.YELLOW}Pay mode {'ON' if pay_mode else 'OFF'}{Colors.END}")
                continue
            if line == "/results":
                display_results(last_results)
                continue

            mode = "pay" if pay_mode else "default"
            prompt = line
            if line.startswith("/rewrite "):
                mode, prompt = "rewrite", line[len("/rewrite "):]

            context = ConversationContext(last_results=list(last_results), messages=list(messages))
            response = await assistant.assist(prompt, mode=mode, context=context)

            print(f"\n{Colors.CYAN}assistant>{Colors.END} {response.text}\n")
            if response.receipt:
                campaign = response.receipt.campaign
                print(
                    f"{Colors.GREEN}Receipt: ${response.receipt.donation.amount} via "
                    f"{response.receipt.donation.chain} | {campaign.title} now at "
                    f"${campaign.raised:,.2f} of ${campaign.goal:,.2f} ({campaign.progress:.0f}%){Colors.END}\n"
                )

            if response.results:
                last_results = [ResultRef(id=r["id"], title=r["title"]) for r in response.results]
            messages.append(ChatMessage(role="user", text=prompt))
            messages.append(ChatMessage(role="assistant", text=response.text))
    finally:
        await store.close()

    print("Goodbye!")


if __name__ == "__main__":
    asyncio.run(run_chat())
