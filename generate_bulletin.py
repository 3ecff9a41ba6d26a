"""
Pre-generate the 24-hour bulletin and its detail cards.

Run on a schedule (for example every three hours) so readers are served from
a warm cache. Requires MONGODB_URI: in-memory stores do not outlive this
process.
"""

import sys
from typing import Any, Dict

import anyio
from dotenv import load_dotenv

from newsrelay.config import Settings
from newsrelay.domain.exceptions import ConfigurationError
from newsrelay.infrastructure.components import ComponentsFactory
from newsrelay.logging import init_logging, shutdown_logging


async def pregenerate(settings: Settings) -> Dict[str, Any]:
    if not settings.mongodb_uri:
        raise ConfigurationError(
            "MONGODB_URI is required to pre-generate bulletins", config_key="MONGODB_URI"
        )
    components = ComponentsFactory.create(settings)
    try:
        if components.bulletins is None:
            raise ConfigurationError(
                "Bulletins need GUARDIAN_API_KEY and GEMINI_API_KEY",
                config_key="GEMINI_API_KEY",
            )
        await components.startup()
        return await components.bulletins.pregenerate()
    finally:
        await components.aclose()


def main() -> int:
    load_dotenv()
    settings = Settings()
    init_logging(settings)
    try:
        result = anyio.run(pregenerate, settings)
    except ConfigurationError as e:
        print(e.message, file=sys.stderr)
        return 1
    finally:
        shutdown_logging()
    print(
        f"Generated {len(result['bulletin']['bullets'])} bullets "
        f"and {len(result['cards']['cards'])} cards"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
