"""服务入口 -- python -m taskrelay.gateway

端口取自 TASKRELAY_PORT（经 RelayConfig 校验）。
"""

import sys

import uvicorn
from taskrelay.core.config import load_relay_config
from taskrelay.core.exceptions import ConfigError


def main() -> None:
    try:
        config = load_relay_config()
    except ConfigError as e:
        print(f"配置错误: {e}", file=sys.stderr)
        sys.exit(1)

    uvicorn.run(
        "taskrelay.gateway.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=config.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
