"""使用 uvicorn 启动 chat relay：``python -m shohoj_core``。"""

import uvicorn

from shohoj_core.api.server import create_app
from shohoj_core.config.settings import settings


if __name__ == "__main__":
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)
