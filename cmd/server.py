"""
HealthChat Knowledge Service - Server Entry Point

Starts the knowledge API, or opens an interactive prompt that prints the RAG
context assembled for each query.

Usage:
    python cmd/server.py --mode api

Or to inspect retrieval from the terminal:
    python cmd/server.py --mode interactive
"""

import asyncio
import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

import uvicorn

from healthchat.config.settings import get_settings
from healthchat.rag.service import RagService


async def interactive_mode(rag_service: RagService):
    """Run in interactive mode for testing."""
    print("🎯 Interactive Mode - Type 'exit' to quit")

    stats = rag_service.stats()
    print(f"📚 {stats.item_count} knowledge items, {stats.vector_count} embedded")

    while True:
        try:
            query = input("\n🩺 Enter your query: ").strip()
            if query.lower() in ['exit', 'quit', 'q']:
                break

            if not query:
                continue

            print("🔄 Retrieving...")
            context = await rag_service.build_context(query)
            print(context or "📭 No relevant knowledge found")

        except KeyboardInterrupt:
            break


async def run_interactive(api_key: str = None):
    rag_service = RagService()
    if api_key:
        rag_service.set_api_key(api_key)

    try:
        if not await rag_service.initialize():
            print("❌ Failed to build the knowledge index")
            sys.exit(1)
        await interactive_mode(rag_service)
    finally:
        await rag_service.close()


def main():
    """Main application entry point."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="HealthChat Knowledge Service")
    parser.add_argument("--mode", choices=["api", "interactive"], default="api",
                        help="Run mode")
    parser.add_argument("--host", default=settings.service.host, help="API host")
    parser.add_argument("--port", type=int, default=settings.service.port, help="API port")
    parser.add_argument("--api-key", help="Embedding API key for interactive mode")

    args = parser.parse_args()

    if args.mode == "api":
        print(f"🌐 Starting API server on {args.host}:{args.port}")
        uvicorn.run("healthchat.main:app", host=args.host, port=args.port)
    else:
        asyncio.run(run_interactive(args.api_key))


if __name__ == "__main__":
    main()
