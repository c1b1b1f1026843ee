"""Main entry point for an AgentNet agent with its HTTP gateway."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv


def main():
    """Run the agent."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    # Paths and logging read the environment at import time
    from agentnet.agent import Agent
    from agentnet.api import create_fastapi_app
    from agentnet.config import AgentConfig
    from agentnet.logging_config import setup_logging

    config = AgentConfig.from_env()
    setup_logging(agent=config.identity.network)

    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8000"))

    app = create_fastapi_app(Agent(config))

    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
