"""Run the speech bridge with uvicorn: ``python -m tts_bridge.speech``."""

import uvicorn

from tts_bridge.speech.app import create_app
from tts_bridge.speech.config import BridgeConfig


def main() -> None:
    config = BridgeConfig()
    app = create_app(config)
    # logging is configured by create_app; keep uvicorn from installing its own handlers
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)


if __name__ == "__main__":
    main()
